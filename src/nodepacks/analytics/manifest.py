"""
Analytics Node Pack Manifest - Registration entry point for the built-in nodes.
"""

from __future__ import annotations

from typing import Dict, Tuple

from node_registry.factory import ModelNodeFactory, NodeFactory
from node_registry.models import NodeMetadata, NodePackManifest

from .aggregation import GroupAndAggregateNode, JoinerNode
from .sampling import PartitionNode
from .sources import CsvInputNode, TableCreatorNode
from .transforms import ColumnFilterNode, FilterNode, MissingValuesNode, NormalizerNode, SorterNode
from .visualization import ChartNode


_FACTORIES = [
    ModelNodeFactory(
        CsvInputNode,
        NodeMetadata(id="csv_input", name="CSV Reader", category="IO",
                     keywords=["csv", "file", "url", "import"], icon="file-text", to_dashboard=True),
        short_description="Read CSV data from text, a file or a URL",
    ),
    ModelNodeFactory(
        TableCreatorNode,
        NodeMetadata(id="table_creator", name="Table Creator", category="IO",
                     keywords=["manual", "grid", "table"], icon="table"),
        short_description="Type a small table by hand",
    ),
    ModelNodeFactory(
        FilterNode,
        NodeMetadata(id="filter", name="Row Filter", category="Transform",
                     keywords=["filter", "where", "rows"], icon="filter"),
        short_description="Keep rows matching conditions",
        detailed_description=(
            "Keeps rows matching all (AND) or any (OR) of the conditions. "
            "Text comparisons ignore case."
        ),
    ),
    ModelNodeFactory(
        ColumnFilterNode,
        NodeMetadata(id="column_filter", name="Column Filter", category="Transform",
                     keywords=["columns", "select", "drop"], icon="columns"),
        short_description="Keep or exclude columns",
    ),
    ModelNodeFactory(
        SorterNode,
        NodeMetadata(id="sorter", name="Sorter", category="Transform",
                     keywords=["sort", "order"], icon="sort"),
        short_description="Sort rows by one or more columns",
    ),
    ModelNodeFactory(
        GroupAndAggregateNode,
        NodeMetadata(id="group_and_aggregate", name="GroupBy", category="Aggregation",
                     keywords=["group", "aggregate", "sum", "average"], icon="layers",
                     to_dashboard=True),
        short_description="Group rows and aggregate columns",
    ),
    ModelNodeFactory(
        JoinerNode,
        NodeMetadata(id="joiner", name="Joiner", category="Aggregation",
                     keywords=["join", "merge", "lookup"], icon="git-merge"),
        short_description="Join two tables on a key column",
    ),
    ModelNodeFactory(
        MissingValuesNode,
        NodeMetadata(id="missing_values", name="Missing Values", category="Transform",
                     keywords=["null", "impute", "fill"], icon="eraser"),
        short_description="Fill or remove missing values",
    ),
    ModelNodeFactory(
        NormalizerNode,
        NodeMetadata(id="normalizer", name="Normalizer", category="Transform",
                     keywords=["scale", "z-score", "min-max"], icon="sliders"),
        short_description="Rescale numeric columns",
    ),
    ModelNodeFactory(
        PartitionNode,
        NodeMetadata(id="partition", name="Partitioning", category="Sampling",
                     keywords=["split", "sample", "train", "test"], icon="scissors"),
        short_description="Split a table into selected and remaining rows",
    ),
    ModelNodeFactory(
        ChartNode,
        NodeMetadata(id="chart", name="Chart", category="Visualization",
                     keywords=["plot", "graph", "visualize"], icon="bar-chart", to_dashboard=True),
        short_description="Show a chart on the dashboard",
    ),
]


MANIFEST = NodePackManifest(
    name="analytics",
    version="1.0.0",
    description="Built-in data sources, transforms, aggregation and chart nodes",
    nodes=[f.type_id for f in _FACTORIES],
    entry_point="nodepacks.analytics:register_nodes",
)


def register_nodes() -> Tuple[NodePackManifest, Dict[str, NodeFactory]]:
    """Entry point for the ``workbench.nodepacks`` group."""
    return MANIFEST, {f.type_id: f for f in _FACTORIES}


__all__ = ["MANIFEST", "register_nodes"]
