"""Registration and parametrization facilities for defining benchmark tasks."""

from __future__ import annotations

import inspect
import itertools
import types
import warnings
from functools import partial, update_wrapper
from typing import Any, Callable, Iterable, Union, get_args, get_origin, overload

from microbench.task import Setup, Task


def _check_against_interface(params: dict[str, Any], fun: Callable) -> None:
    sig = inspect.signature(fun)
    fvarnames = set(sig.parameters.keys())
    fvartypes = {k: v.annotation for k, v in sig.parameters.items()}
    varnames = set(params.keys())
    if not varnames <= fvarnames:
        # never empty due to the if condition.
        diffvar, *_ = varnames - fvarnames
        raise TypeError(f"task {fun.__name__}() got an unexpected keyword argument {diffvar!r}")
    # at this point, params.keys() <= argnames.
    for k, v in params.items():
        fvtype = fvartypes[k]
        # if no type annotation is given, everything is allowed.
        if fvtype == inspect.Parameter.empty or isinstance(fvtype, str):
            continue
        # to unwrap generic containers like list[str].
        expected_type = get_origin(fvtype) or fvtype
        # in case of a union like str | int, check args instead.
        if expected_type in (Union, types.UnionType):
            expected_type = get_args(fvtype)
        if not isinstance(v, expected_type):
            raise TypeError(
                f"task {fun.__name__}(): expected type {fvtype}, "
                f"got type {type(v)} for parametrized argument {k!r}"
            )


def _default_namegen(fn: Callable, **kwargs: Any) -> str:
    return fn.__name__ + "_" + "_".join(f"{k}={v}" for k, v in kwargs.items())


def _make_family(
    fn: Callable,
    parameters: Iterable[dict[str, Any]],
    setup: Setup | None,
    namegen: Callable[..., str],
    tags: tuple[str, ...],
) -> list[Task]:
    tasks = []
    labels = set()
    for params in parameters:
        _check_against_interface(params, fn)

        label = namegen(fn, **params)
        if label in labels:
            warnings.warn(
                f"Got duplicate label {label!r} for task {fn.__name__}(). "
                f"Perhaps you specified a parameter configuration twice?"
            )
        labels.add(label)

        wrapper = update_wrapper(partial(fn, **params), fn)
        tasks.append(Task(label, wrapper, setup=setup, tags=tags))
    return tasks


# Overloads for the ``task`` decorator.
# Case #1: Bare application without parentheses
# @microbench.task
# def concat() -> str:
#     return "a" + "b"
@overload
def task(
    func: None = None,
    label: str | None = None,
    setup: Setup | None = None,
    tags: tuple[str, ...] = (),
) -> Callable[[Callable], Task]: ...


# Case #2: Application with arguments
# @microbench.task(label="string concat", setup=make_strings)
# def concat(strings: list[str]) -> str:
#     return "".join(strings)
@overload
def task(
    func: Callable[..., Any],
    label: str | None = None,
    setup: Setup | None = None,
    tags: tuple[str, ...] = (),
) -> Task: ...


def task(
    func: Callable[..., Any] | None = None,
    label: str | None = None,
    setup: Setup | None = None,
    tags: tuple[str, ...] = (),
) -> Task | Callable[[Callable], Task]:
    """
    Define a benchmark task from a function.

    Parameters
    ----------
    func: Callable[..., Any] | None
        The workload to measure. This slot only exists to allow application of the decorator
        without parentheses, you should never fill it explicitly.
    label: str | None
        A display name for the task. Defaults to the function name.
    setup: Callable[[], Any] | None
        A callable run before every iteration, whose return value is passed to the workload.
    tags: tuple[str, ...]
        Additional tags to attach for bookkeeping and selective filtering during collection.

    Returns
    -------
    Task | Callable[[Callable], Task]
        The resulting task (if no arguments were given), or a parametrized decorator
        returning the task.
    """

    def decorator(fun: Callable) -> Task:
        return Task(label or fun.__name__, fun, setup=setup, tags=tags)

    if func is not None:
        return decorator(func)
    else:
        return decorator


def parametrize(
    parameters: Iterable[dict[str, Any]],
    setup: Setup | None = None,
    namegen: Callable[..., str] = _default_namegen,
    tags: tuple[str, ...] = (),
) -> Callable[[Callable], list[Task]]:
    """
    Define a family of tasks over a function with varying parameters.

    Parameters
    ----------
    parameters: Iterable[dict[str, Any]]
        The different sets of parameters defining the task family. Every set is bound to
        the function as keyword arguments.
    setup: Callable[[], Any] | None
        A callable run before every iteration of each of the tasks.
    namegen: Callable[..., str]
        A function taking the workload function and given parameters that generates a unique
        label for the task. The default label is the function's name followed by the
        keyword arguments in ``key=value`` format separated by underscores.
    tags: tuple[str, ...]
        Additional tags to attach for bookkeeping and selective filtering during collection.

    Returns
    -------
    Callable[[Callable], list[Task]]
        A parametrized decorator returning the task family.
    """

    def decorator(fn: Callable) -> list[Task]:
        return _make_family(fn, parameters, setup, namegen, tags)

    return decorator


def product(
    setup: Setup | None = None,
    namegen: Callable[..., str] = _default_namegen,
    tags: tuple[str, ...] = (),
    **iterables: Iterable,
) -> Callable[[Callable], list[Task]]:
    """
    Define a family of tasks over a cartesian product of one or more iterables.

    Parameters
    ----------
    setup: Callable[[], Any] | None
        A callable run before every iteration of each of the tasks.
    namegen: Callable[..., str]
        A function taking the workload function and given parameters that generates a unique
        label for the task.
    tags: tuple[str, ...]
        Additional tags to attach for bookkeeping and selective filtering during collection.
    **iterables: Iterable
        The iterables parametrizing the tasks.

    Returns
    -------
    Callable[[Callable], list[Task]]
        A parametrized decorator returning the task family.
    """

    def decorator(fn: Callable) -> list[Task]:
        varnames = iterables.keys()
        parameters = (
            dict(zip(varnames, values)) for values in itertools.product(*iterables.values())
        )
        return _make_family(fn, parameters, setup, namegen, tags)

    return decorator
