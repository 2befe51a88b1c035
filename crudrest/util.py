#
from typing import Any, Callable


class ClassPropertyDescriptor:
    """
    Read-only property evaluated on the class, e.g. `Todo._s_object_id`
    """

    def __init__(self, fget: classmethod) -> None:
        self.fget = fget

    def __get__(self, obj: Any, klass: type = None) -> Any:
        if klass is None:
            klass = type(obj)
        return self.fget.__get__(obj, klass)()

    def __set__(self, obj: Any, value: Any) -> None:
        raise AttributeError("can't set attribute")


def classproperty(func: Callable) -> ClassPropertyDescriptor:
    """
    classproperty decorator, may be stacked on top of `functools.lru_cache`
    """
    if not isinstance(func, (classmethod, staticmethod)):
        func = classmethod(func)

    return ClassPropertyDescriptor(func)
