# Collection names in the document store
PROJECTS = "projects"
SUBCONTRACTORS = "subcontractors"
TIME_LOGS = "time_logs"
INVOICES = "invoices"
USERS = "users"
ROLES = "roles"
USER_INVITES = "user_invites"
AUTH_ACCOUNTS = "auth_accounts"
NOTIFICATIONS = "notifications"
AUDIT_LOGS = "audit_logs"
SETTINGS = "settings"

FACTORIAL_SETTINGS_ID = "factorial"

# Grants every application path
ALL_PATHS = "*"

# Application areas, guarded through RoleDefinition.allowed_paths
MENU_ITEMS = [
    {"path": "/", "label": "Dashboard"},
    {"path": "/projects", "label": "Projects"},
    {"path": "/timesheets", "label": "Timesheets"},
    {"path": "/financials", "label": "Invoicing"},
    {"path": "/resources", "label": "Resources"},
    {"path": "/reports", "label": "Reports"},
    {"path": "/settings", "label": "Settings"},
    {"path": "/admin/users", "label": "Users"},
    {"path": "/admin/roles", "label": "Roles"},
]

# Collections a client may watch over the realtime endpoint
WATCHABLE_COLLECTIONS = {
    PROJECTS: "/projects",
    SUBCONTRACTORS: "/resources",
    TIME_LOGS: "/timesheets",
    INVOICES: "/financials",
    NOTIFICATIONS: "/",
    USERS: "/admin/users",
    ROLES: "/admin/roles",
}
