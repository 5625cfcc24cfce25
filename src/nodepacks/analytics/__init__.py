"""
Analytics Node Pack - Data sources, transforms, aggregation and charts.

Registered through the ``workbench.nodepacks`` entry point group:

    registry.register_pack(*register_nodes())
"""

from .manifest import MANIFEST, register_nodes
from .sources import CsvInputNode, TableCreatorNode, parse_csv
from .transforms import ColumnFilterNode, FilterNode, MissingValuesNode, NormalizerNode, SorterNode
from .aggregation import GroupAndAggregateNode, JoinerNode
from .sampling import PartitionNode
from .visualization import ChartNode

__all__ = [
    "MANIFEST",
    "register_nodes",
    "parse_csv",
    "CsvInputNode",
    "TableCreatorNode",
    "FilterNode",
    "ColumnFilterNode",
    "SorterNode",
    "MissingValuesNode",
    "NormalizerNode",
    "GroupAndAggregateNode",
    "JoinerNode",
    "PartitionNode",
    "ChartNode",
]
