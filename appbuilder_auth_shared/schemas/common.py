from enum import Enum

ADMIN_GROUP = "admin"
ALL_USERS_GROUP = "all_users"

DEFAULT_ORGANIZATION_NAME = "Untitled organization"


class MembershipStatus(str, Enum):
    INVITED = "invited"
    ACTIVE = "active"
    ARCHIVED = "archived"


class ResourceKind(str, Enum):
    APP = "App"
    USER = "User"
    THREAD = "Thread"
    COMMENT = "Comment"
    FOLDER = "Folder"


class Action(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


# Group-level capability flags, keyed by the column that stores them.
GROUP_CAPABILITIES = ("app_create", "app_delete", "folder_create")

# App-level override flags.
APP_CAPABILITIES = ("read", "update", "delete")
