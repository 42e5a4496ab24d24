from .errors import (
    AccessError,
    AuthorizationError,
    ConflictError,
    DependencyError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from .cache import AccessCache
from .types import (
    AccessSnapshot,
    MenuComposition,
    MenuItem,
    MenuItemPreference,
    ModuleAccess,
    ModuleResolution,
    PermissionCheck,
    ResolvedMenuItem,
    UserContext,
)
from .service import AccessService
