"""Build Config instances from common sources.

Each adapter produces a ConfigMap and wraps it in a root Config whose map
can later be hot-swapped with ``Config.replace``.

Example:
    ```python
    from configfacade import from_yaml, load_yaml_map

    config = from_yaml("defaults.yaml", "settings.yaml")
    port = config.at_path("server").get_integer("port").cache()

    # Later, after the files changed on disk
    config.replace(load_yaml_map("defaults.yaml", "settings.yaml"))
    ```
"""

import dataclasses
import logging
import os
import types
import typing
from collections.abc import Iterable
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from typing import TypeVar

import yaml

from .config import Config
from .config_map import ConfigMap
from .config_map import DictConfigMap
from .config_map import ObjectConfigMap
from .config_map import replaceable
from .exceptions import ConfigFileError
from .exceptions import PropertyAbsentError
from .models import BindOptions
from .property import Property
from .utils import SEPARATOR
from .utils import deep_merge
from .utils import flatten

logger = logging.getLogger(__name__)

T = TypeVar("T")


def from_config_map(config_map: ConfigMap | Mapping[str, Any]) -> Config:
    """Root Config over any ConfigMap, promoted to a replaceable one if needed."""
    return Config(replaceable(config_map))


def from_map(mapping: Mapping[str, Any]) -> Config:
    """Root Config over a mapping of dotted keys.

    The mapping is held by reference: later changes to it are visible to
    live properties straight away, and to cached ones after ``reload``.
    """
    return from_config_map(DictConfigMap(mapping))


def from_properties(properties: Mapping[Any, Any]) -> Config:
    """Root Config over a snapshot of a flat properties mapping.

    Keys and values are converted to strings.
    """
    return from_map({str(key): str(value) for key, value in properties.items()})


def from_environ(prefix: str = "", environ: Mapping[str, str] | None = None) -> Config:
    """Root Config over environment variables.

    Only variables starting with ``prefix`` are kept. The prefix is stripped,
    names are lowercased and ``__`` becomes the path separator, so with
    prefix ``APP_`` the variable ``APP_SERVER__PORT`` is read as
    ``server.port``.

    Args:
        prefix: Required variable name prefix
        environ: Variables to read (default: os.environ)
    """
    environ = os.environ if environ is None else environ
    values = {}
    for name, value in environ.items():
        if not name.startswith(prefix):
            continue
        key = name[len(prefix) :].lower().replace("__", SEPARATOR)
        if key:
            values[key] = value
    return from_map(values)


def from_object(obj: Any, accessors: Iterable[str] | None = None) -> Config:
    """Root Config reflecting an object's public attributes and accessors.

    See ``ObjectConfigMap`` for which attributes and methods are exposed.

    Args:
        obj: Object to reflect
        accessors: Names to expose instead of discovering them
    """
    return from_config_map(ObjectConfigMap(obj, accessors))


def from_yaml(*paths: Path | str) -> Config:
    """Root Config over one or more YAML files. See ``load_yaml_map``."""
    return from_config_map(load_yaml_map(*paths))


def load_yaml_map(*paths: Path | str) -> DictConfigMap:
    """Read YAML files into one flat ConfigMap.

    Files are deep merged in order, later files taking precedence, and
    nested mappings are flattened to dotted keys. Missing files are skipped.

    Args:
        paths: YAML files, lowest precedence first

    Returns:
        DictConfigMap over the merged, flattened data

    Raises:
        ConfigFileError: If a file's root is not a mapping
    """
    merged: dict[str, Any] = {}

    for path in paths:
        data = _read_yaml(Path(path))
        if data:
            merged = deep_merge(merged, data)

    return DictConfigMap(flatten(merged))


def _read_yaml(path: Path) -> dict[str, Any] | None:
    """Read YAML file.

    Args:
        path: Path to YAML file

    Returns:
        Dictionary from YAML or None if file doesn't exist or can't be read

    Raises:
        ConfigFileError: If the YAML root is not a mapping
    """
    if not path.exists():
        return None

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to read configuration from {path}: {e}")
        return None

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigFileError(f"Configuration root in {path} must be a mapping, got {type(data).__name__}")
    return data


def pretty_print(config: Config) -> str:
    """Render every path below ``config`` as ``path=value`` lines.

    Absent values render empty. The result starts with a newline so it reads
    well appended to a log message.
    """
    lines = ["\n"]
    for path in config.get_paths():
        value = config.get_string(path).optional()
        lines.append(f"{path}={'' if value is None else value}\n")
    return "".join(lines)


_UNSET = object()


def bind(config: Config, cls: type[T], options: BindOptions | None = None) -> T:
    """Build a dataclass instance from a config, one field per path.

    Field names are used as paths relative to ``config`` and each field is
    resolved once, here:

    - ``Property[X]`` fields are bound to a live property
    - nested dataclass fields are bound from ``config.at_path(name)``
    - other fields are read now and converted to their annotated type

    An absent value falls back to the field default, then to None if the
    field is ``X | None`` or ``options.allow_missing`` is set.

    Args:
        config: Config to read
        cls: Dataclass to instantiate
        options: Binding options

    Returns:
        New instance of ``cls``

    Raises:
        TypeError: If ``cls`` is not a dataclass
        PropertyAbsentError: If a required field has no value
        UnsupportedTypeError: If a field's type has no converter
    """
    if not (isinstance(cls, type) and dataclasses.is_dataclass(cls)):
        raise TypeError(f"Can only bind dataclasses, got {cls!r}")
    options = options or BindOptions()
    hints = typing.get_type_hints(cls)

    values = {}
    for field in dataclasses.fields(cls):
        if not field.init:
            continue
        value = _bind_field(config, field, hints[field.name], options)
        if value is not _UNSET:
            values[field.name] = value

    logger.debug(f"Bound {cls.__name__} at '{config.current_path}'")
    return cls(**values)


def _bind_field(config: Config, field: dataclasses.Field, annotation: Any, options: BindOptions) -> Any:
    if annotation is Property:
        return config.get_string(field.name)
    if typing.get_origin(annotation) is Property:
        (target,) = typing.get_args(annotation)
        return config.get_property(field.name, target)

    nullable = False
    if typing.get_origin(annotation) in (typing.Union, types.UnionType):
        args = typing.get_args(annotation)
        non_null = [a for a in args if a is not type(None)]
        if len(non_null) == 1 and len(non_null) < len(args):
            annotation = non_null[0]
            nullable = True

    if isinstance(annotation, type) and dataclasses.is_dataclass(annotation):
        return bind(config.at_path(field.name), annotation, options)

    prop = config.get_property(field.name, annotation)
    value = prop.optional()
    if value is not None:
        return value
    if field.default is not dataclasses.MISSING or field.default_factory is not dataclasses.MISSING:
        return _UNSET
    if nullable or options.allow_missing:
        return None
    raise PropertyAbsentError(prop.key)
