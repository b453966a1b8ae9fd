# SPDX-License-Identifier: Apache-2.0

"""Common functions used by Fenceline CLI interfaces.

Commands are public methods of category classes. Their arguments are
declared with the :func:`args` decorator and turned into argparse
subparsers through an oslo.config ``SubCommandOpt``.
"""

from __future__ import annotations

import argparse
import inspect
from typing import Any
from typing import Callable

from oslo_config import cfg

CONF = cfg.CONF

_KWARG_PREFIX = "action_kwarg_"


class MissingArgs(Exception):
    """Exception for missing required arguments."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"Missing argument(s): {', '.join(missing)}")


def args(*args: Any, **kwargs: Any) -> Callable[..., Any]:
    """Decorator declaring one argparse argument of a command.

    :param args: positional arguments for argparse.add_argument
    :param kwargs: keyword arguments for argparse.add_argument
    :returns: decorator function
    """

    def _decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        func.__dict__.setdefault("args", []).insert(0, (args, kwargs))
        return func

    return _decorator


def methods_of(obj: object) -> list[tuple[str, Callable[..., Any]]]:
    """Return the public callables of a command category object.

    :param obj: object to inspect
    :returns: list of tuples of (method_name, method)
    """
    return [
        (name, getattr(obj, name))
        for name in dir(obj)
        if not name.startswith("_") and callable(getattr(obj, name))
    ]


def missing_args(fn: Callable[..., Any], fn_kwargs: dict[str, Any]) -> list[str]:
    """Return the required parameters of ``fn`` absent from ``fn_kwargs``."""
    missing = []
    for name, param in inspect.signature(fn).parameters.items():
        if param.default is inspect.Parameter.empty and name not in fn_kwargs:
            missing.append(name)
    return missing


def add_command_parsers(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    categories: dict[str, type],
) -> None:
    """Add a parser per category and a subparser per category action.

    :param subparsers: argparse subparsers action
    :param categories: dict mapping category names to command classes
    """
    subparsers.add_parser("version")

    for category, command_cls in categories.items():
        command_object = command_cls()
        desc = getattr(command_object, "description", None)
        parser = subparsers.add_parser(category, description=desc)

        actions = parser.add_subparsers(dest="action")
        actions.required = True

        for action, action_fn in methods_of(command_object):
            action_parser = actions.add_parser(
                action, description=inspect.getdoc(action_fn)
            )
            names: list[str] = []
            for fn_args, fn_kwargs in getattr(action_fn, "args", []):
                fn_kwargs = dict(fn_kwargs)
                name = fn_kwargs.pop("dest", fn_args[0].lstrip("-")).replace("-", "_")
                names.append(name)
                if fn_args[0].startswith("-"):
                    action_parser.add_argument(
                        *fn_args, dest=_KWARG_PREFIX + name, **fn_kwargs
                    )
                else:
                    action_parser.add_argument(_KWARG_PREFIX + name, **fn_kwargs)

            action_parser.set_defaults(action_fn=action_fn, action_kwargs=names)


def get_action_fn() -> tuple[Callable[..., Any], dict[str, Any]]:
    """Get the action function and its arguments from parsed config.

    :returns: tuple of (function, keyword_args)
    :raises MissingArgs: if required arguments are missing
    """
    fn = CONF.category.action_fn
    fn_kwargs: dict[str, Any] = {}
    for name in CONF.category.action_kwargs:
        value = getattr(CONF.category, _KWARG_PREFIX + name)
        if value is not None:
            fn_kwargs[name] = value

    missing = missing_args(fn, fn_kwargs)
    if missing:
        raise MissingArgs(missing)
    return fn, fn_kwargs
