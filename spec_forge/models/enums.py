from enum import Enum


class Priority(str, Enum):
    """MoSCoW tiers, P1 highest."""
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"


class Language(str, Enum):
    FR = "fr"
    EN = "en"


class RequirementCategory(str, Enum):
    FUNCTIONAL = "FUNCTIONAL"
    NON_FUNCTIONAL = "NON_FUNCTIONAL"
    CONSTRAINT = "CONSTRAINT"


class VerificationMethod(str, Enum):
    INSPECTION = "INSPECTION"
    ANALYSIS = "ANALYSIS"
    DEMONSTRATION = "DEMONSTRATION"
    TEST = "TEST"


class RiskLevel(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class QualityCharacteristic(str, Enum):
    """ISO/IEC 25010:2023 product quality characteristics."""
    FUNCTIONAL_SUITABILITY = "FUNCTIONAL_SUITABILITY"
    PERFORMANCE_EFFICIENCY = "PERFORMANCE_EFFICIENCY"
    COMPATIBILITY = "COMPATIBILITY"
    INTERACTION_CAPABILITY = "INTERACTION_CAPABILITY"
    RELIABILITY = "RELIABILITY"
    SECURITY = "SECURITY"
    MAINTAINABILITY = "MAINTAINABILITY"
    FLEXIBILITY = "FLEXIBILITY"
    SAFETY = "SAFETY"


class CoverageTechnique(str, Enum):
    """ISO/IEC/IEEE 29119-4 test design techniques."""
    EQUIVALENCE_PARTITIONING = "EP"
    BOUNDARY_VALUE_ANALYSIS = "BVA"
    DECISION_TABLE = "DT"
    STATE_TRANSITION = "ST"
    ERROR_GUESSING = "EG"


class StepKeyword(str, Enum):
    GIVEN = "Given"
    WHEN = "When"
    THEN = "Then"
    AND = "And"
    BUT = "But"


class ScenarioType(str, Enum):
    HAPPY_PATH = "happy_path"
    EDGE_CASE = "edge_case"
    ERROR = "error"
    BOUNDARY = "boundary"


class TestLevel(str, Enum):
    __test__ = False  # not a pytest class

    UNIT = "unit"
    INTEGRATION = "integration"
    SYSTEM = "system"
    ACCEPTANCE = "acceptance"


class ComplianceDomain(str, Enum):
    GENERAL = "general"
    AVIATION = "aviation"      # DO-178C
    MEDICAL = "medical"        # IEC 62304
    AUTOMOTIVE = "automotive"  # ISO 26262
    RAILWAY = "railway"        # EN 50716
    SAFETY = "safety"          # IEC 61508


class WellFormednessCriterion(str, Enum):
    """ISO/IEC/IEEE 29148 §5.2.5 characteristics of an individual requirement."""
    NECESSARY = "NECESSARY"
    UNAMBIGUOUS = "UNAMBIGUOUS"
    COMPLETE = "COMPLETE"
    SINGULAR = "SINGULAR"
    FEASIBLE = "FEASIBLE"
    VERIFIABLE = "VERIFIABLE"
    CORRECT = "CORRECT"
    CONFORMING = "CONFORMING"
    TRACEABLE = "TRACEABLE"


class TraceabilityStatus(str, Enum):
    COVERED = "COVERED"
    PARTIALLY_COVERED = "PARTIALLY_COVERED"
    NOT_COVERED = "NOT_COVERED"


class ComplianceStatus(str, Enum):
    COMPLIANT = "COMPLIANT"
    PARTIALLY_COMPLIANT = "PARTIALLY_COMPLIANT"
    NON_COMPLIANT = "NON_COMPLIANT"


class IssueType(str, Enum):
    CRITERIA_FAILED = "CRITERIA_FAILED"
    COMPLETENESS_BELOW = "COMPLETENESS_BELOW"
    TRACEABILITY_GAP = "TRACEABILITY_GAP"
    DANGLING_REFERENCE = "DANGLING_REFERENCE"
    GHERKIN_SYNTAX = "GHERKIN_SYNTAX"


class OutcomeStatus(str, Enum):
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class PipelineStatus(str, Enum):
    RECEIVED = "RECEIVED"
    REFINING = "REFINING"
    GENERATING_TESTS = "GENERATING_TESTS"
    VALIDATING = "VALIDATING"
    TRACING = "TRACING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class AgentName(str, Enum):
    REFINEMENT = "REFINE"
    TEST_GENERATION = "TESTGEN"
    VALIDATION = "VALIDATE"
    TRACEABILITY = "TRACE"
