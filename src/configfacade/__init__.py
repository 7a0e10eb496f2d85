"""configfacade: Typed, path-addressed, hot-swappable configuration properties.

This library lets application code read typed configuration values by dotted
path without knowing where they come from (dicts, properties, environment
variables, YAML files, plain objects), and keeps working when the source is
replaced at runtime.

Public API:
    Config: Scoped view producing typed properties for paths
    Property: Lazy typed value with cache/backup/or_ combinators and listeners
    PropertyType: Closed set of supported value types
    from_map, from_properties, from_environ, from_object, from_yaml: Adapters
    bind: Build a dataclass from a Config
    CallbackExecutionList: Fan-out of one event to many callbacks
    ConfigError and subclasses: Exception types

Example:
    ```python
    from configfacade import from_map

    settings = {"db.host": "localhost", "db.port": "5432"}
    config = from_map(settings)

    db = config.at_path("db")
    port = db.get_integer("port").cache()
    host = db.get_string("host").or_("127.0.0.1")

    port.add_listener(lambda value: print(f"port is now {value}"))

    # Swap in a new snapshot; listeners fire and caches are invalidated
    config.replace({"db.host": "db.internal", "db.port": "6432"})
    ```
"""

from .callbacks import DIRECT_EXECUTOR
from .callbacks import Callback
from .callbacks import CallbackExecutionList
from .callbacks import DirectExecutor
from .callbacks import FunctionCallback
from .callbacks import Subscription
from .config import Config
from .config_map import ChainedConfigMap
from .config_map import ConfigMap
from .config_map import DictConfigMap
from .config_map import ObjectConfigMap
from .config_map import ReplaceableConfigMap
from .config_map import VolatileConfigMap
from .config_map import replaceable
from .config_map import to_config_map
from .conversion import PropertyType
from .exceptions import ConfigError
from .exceptions import ConfigFileError
from .exceptions import ConversionError
from .exceptions import InvalidPathError
from .exceptions import PropertyAbsentError
from .exceptions import UnsupportedTypeError
from .factory import bind
from .factory import from_config_map
from .factory import from_environ
from .factory import from_map
from .factory import from_object
from .factory import from_properties
from .factory import from_yaml
from .factory import load_yaml_map
from .factory import pretty_print
from .models import BindOptions
from .models import CacheState
from .models import Outcome
from .property import BackupProperty
from .property import CachedProperty
from .property import ChainedProperty
from .property import Property
from .property import StaticProperty
from .property import SupplierProperty
from .utils import deep_merge
from .utils import flatten

__version__ = "0.1.0"

__all__ = [
    "Config",
    "ConfigMap",
    "ReplaceableConfigMap",
    "DictConfigMap",
    "ObjectConfigMap",
    "VolatileConfigMap",
    "ChainedConfigMap",
    "replaceable",
    "to_config_map",
    "Property",
    "StaticProperty",
    "SupplierProperty",
    "ChainedProperty",
    "CachedProperty",
    "BackupProperty",
    "PropertyType",
    "CacheState",
    "Outcome",
    "BindOptions",
    "Callback",
    "FunctionCallback",
    "CallbackExecutionList",
    "Subscription",
    "DirectExecutor",
    "DIRECT_EXECUTOR",
    "from_config_map",
    "from_map",
    "from_properties",
    "from_environ",
    "from_object",
    "from_yaml",
    "load_yaml_map",
    "pretty_print",
    "bind",
    "deep_merge",
    "flatten",
    "ConfigError",
    "ConfigFileError",
    "ConversionError",
    "InvalidPathError",
    "PropertyAbsentError",
    "UnsupportedTypeError",
]
