"""Cluster architecture detection.

StarRocks runs either in ``shared_nothing`` mode (data on BE local disks)
or ``shared_data`` mode (data in object storage, compute nodes with a
local data cache). Lake compaction and data cache diagnostics only make
sense for shared-data clusters.
"""

from typing import TYPE_CHECKING
import logging

from .parsing import column

if TYPE_CHECKING:
    from ...io.datasource import QueryHandle

logger = logging.getLogger(__name__)

SHARED_DATA = "shared_data"
SHARED_NOTHING = "shared_nothing"
UNKNOWN = "unknown"

RUN_MODE_QUERY = "ADMIN SHOW FRONTEND CONFIG LIKE 'run_mode'"
COMPUTE_NODES_QUERY = "SHOW COMPUTE NODES"


def detect_run_mode(handle: "QueryHandle") -> str:
    """Detect the cluster run mode.

    Reads the FE ``run_mode`` config; when that is not readable, a
    non-empty compute node list implies shared-data.

    Parameters
    ----------
    handle : QueryHandle
        Scoped data source handle

    Returns
    -------
    str
        "shared_data", "shared_nothing" or "unknown"
    """
    try:
        config = handle.query(RUN_MODE_QUERY)
        values = column(config, "Value")
        if values is not None and len(values) > 0:
            mode = str(values.iloc[0]).strip().lower()
            if mode in (SHARED_DATA, SHARED_NOTHING):
                return mode
    except Exception as e:
        logger.debug("run_mode config not readable: %s", e)

    try:
        compute_nodes = handle.query(COMPUTE_NODES_QUERY)
        return SHARED_DATA if not compute_nodes.empty else SHARED_NOTHING
    except Exception as e:
        logger.warning("Cannot detect cluster architecture: %s", e)
        return UNKNOWN
