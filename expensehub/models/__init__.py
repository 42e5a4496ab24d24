from .profile import Company, Profile
from .module import SystemModule, CompanyModule, UserModule
from .permission import Permission, UserPermission, RolePermission, PermissionTemplate
from .menu import UserMenuPreference
from .audit import PermissionAuditLog
