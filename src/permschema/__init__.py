from .config import (
    LoggingConfig,
    LogLevel,
    SchemaConfig,
    load_logging_config_from_env,
    load_schema_config_from_env,
)
from .exceptions import (
    DenialCode,
    InvalidObjectError,
    NamespaceMismatchError,
    NamespaceMissingError,
    NoPermissionsFoundError,
    PermissionDeniedError,
    PermissionNotFoundError,
    PermschemaError,
    SchemaDefinitionError,
)
from .logging import (
    CheckLoggerAdapter,
    PermschemaFormatter,
    get_check_logger,
    safe_preview,
    setup_logging,
)
from .permissions import (
    CheckResult,
    IncludedRule,
    Permission,
    PermissionGroup,
    Rule,
    RuleExecution,
)
from .schema import (
    Schema,
    SchemaEntry,
    get_current_schema,
    reset_current_schema,
    resolve_schema,
    set_current_schema,
)
from .user import PermissionHolder, can, check_permission
from .user_proxy import UserProxy, wrap_user

__all__ = [
    'Schema',
    'SchemaEntry',
    'SchemaConfig',
    'LoggingConfig',
    'LogLevel',
    'load_schema_config_from_env',
    'load_logging_config_from_env',
    'PermissionGroup',
    'Permission',
    'CheckResult',
    'Rule',
    'IncludedRule',
    'RuleExecution',
    'UserProxy',
    'wrap_user',
    'PermissionHolder',
    'check_permission',
    'can',
    'get_current_schema',
    'set_current_schema',
    'reset_current_schema',
    'resolve_schema',
    'PermschemaError',
    'SchemaDefinitionError',
    'PermissionNotFoundError',
    'NamespaceMissingError',
    'NamespaceMismatchError',
    'NoPermissionsFoundError',
    'InvalidObjectError',
    'PermissionDeniedError',
    'DenialCode',
    'safe_preview',
    'PermschemaFormatter',
    'CheckLoggerAdapter',
    'setup_logging',
    'get_check_logger',
]
