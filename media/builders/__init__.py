"""
Filter-graph builders, one per operation.

Every builder has the signature ``builder(params, context) -> FilterGraph``
and is pure: it never touches the filesystem or runs a process.
"""
from typing import Callable

from media.graph import BuildContext, FilterGraph
from media.params import OperationParams

Builder = Callable[[OperationParams, BuildContext], FilterGraph]
