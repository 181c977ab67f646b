"""Stop sequencing and travel estimation for restocking runs."""

from .errors import (
    OracleError,
    ThrottledError,
    PlaceNotFoundError,
    NoRouteError,
    OptimisationError,
    PersistenceError,
    RequestSuperseded,
)

from .models import (
    # Data models
    Coordinate,
    Place,
    Stop,
    RouteLeg,
    LocationRecord,
    LocationSchedule,
    RunSection,
    
    # Collaborator protocols
    Geocoder,
    TravelTimeOracle,
    LocationScheduleSource,
    OrderSink,
)

from .schedule import (
    ResolvedSchedule,
    resolve_schedule,
    DEFAULT_DWELL_MINUTES,
)

from .eta import (
    BackoffPolicy,
    RateBudget,
    RateLimitedEtaClient,
)

from .places import (
    PlaceResolver,
    normalize_address,
)

from .greedy import (
    greedy_sequence,
    select_next,
    GreedySequenceResult,
    SequencedStop,
    format_reason,
)

from .estimates import (
    estimate_travel,
    TravelEstimate,
)

from .preview import (
    build_route_preview,
    route_region,
    Annotation,
    AnnotationKind,
    Region,
    RoutePreview,
)

from .planner import (
    ReorderPlanner,
    OptimisationOutcome,
    EstimateOutcome,
    StartTimeStore,
    UNASSIGNED_SECTION_ID,
)

__all__ = [
    # Errors
    "OracleError",
    "ThrottledError",
    "PlaceNotFoundError",
    "NoRouteError",
    "OptimisationError",
    "PersistenceError",
    "RequestSuperseded",
    
    # Data models
    "Coordinate",
    "Place",
    "Stop",
    "RouteLeg",
    "LocationRecord",
    "LocationSchedule",
    "RunSection",
    
    # Collaborator protocols
    "Geocoder",
    "TravelTimeOracle",
    "LocationScheduleSource",
    "OrderSink",
    
    # Schedules
    "ResolvedSchedule",
    "resolve_schedule",
    "DEFAULT_DWELL_MINUTES",
    
    # Oracle access
    "BackoffPolicy",
    "RateBudget",
    "RateLimitedEtaClient",
    "PlaceResolver",
    "normalize_address",
    
    # Sequencing
    "greedy_sequence",
    "select_next",
    "GreedySequenceResult",
    "SequencedStop",
    "format_reason",
    
    # Estimates & preview
    "estimate_travel",
    "TravelEstimate",
    "build_route_preview",
    "route_region",
    "Annotation",
    "AnnotationKind",
    "Region",
    "RoutePreview",
    
    # Session orchestration
    "ReorderPlanner",
    "OptimisationOutcome",
    "EstimateOutcome",
    "StartTimeStore",
    "UNASSIGNED_SECTION_ID",
]
