"""
Matrix Exporter.

Renders a network's pairwise data as dense, label-aligned matrices for
heatmap consumers. Rows and columns follow the network's node order.
"""

import structlog

from covnet.models.matrix import CorrelationMatrix, MatrixLabel
from covnet.models.network import CovenantNetwork

from .lead_lag import LeadLagAnalyzer

logger = structlog.get_logger()

# Cells for pairs without a computed correlation
MISSING_COEFFICIENT = 0.0
MISSING_P_VALUE = 1.0
MISSING_LAG = 0


class MatrixExporter:
    """
    Converts a CovenantNetwork into coefficient, p-value and lead-lag matrices.

    Example:
        >>> matrix = MatrixExporter().export(network)
        >>> print(matrix.labels, matrix.values[0])
    """

    def __init__(self):
        self.logger = structlog.get_logger()

    def export(self, network: CovenantNetwork) -> CorrelationMatrix:
        """
        Build the dense matrices.

        The diagonal is fixed at 1.0 / 0.0 / 0. Coefficient and p-value
        matrices are symmetric; the lag matrix is antisymmetric
        (``lead_lag_matrix[i][j]`` > 0 means row i leads column j).
        """
        labels = [node.covenant_id for node in network.nodes]
        position = {cid: i for i, cid in enumerate(labels)}
        n = len(labels)

        values = [[MISSING_COEFFICIENT] * n for _ in range(n)]
        p_values = [[MISSING_P_VALUE] * n for _ in range(n)]
        lags = [[MISSING_LAG] * n for _ in range(n)]

        for i in range(n):
            values[i][i] = 1.0
            p_values[i][i] = 0.0

        for corr in network.correlations:
            i = position.get(corr.source_covenant_id)
            j = position.get(corr.target_covenant_id)
            if i is None or j is None:
                continue
            values[i][j] = values[j][i] = corr.coefficient
            p_values[i][j] = p_values[j][i] = corr.p_value

        for (source, target), result in LeadLagAnalyzer.directional_index(network.lead_lags).items():
            i = position.get(source)
            j = position.get(target)
            if i is None or j is None or i == j:
                continue
            lags[i][j] = result.lag_periods

        metadata = [
            MatrixLabel(
                covenant_id=node.covenant_id,
                covenant_name=node.covenant_name,
                covenant_type=node.covenant_type,
                facility_name=node.facility_name,
                borrower_name=node.borrower_name,
            )
            for node in network.nodes
        ]

        self.logger.info(
            "correlation_matrix_exported",
            network_id=network.network_id,
            dimension=n,
        )

        return CorrelationMatrix(
            labels=labels,
            metadata=metadata,
            values=values,
            p_values=p_values,
            lead_lag_matrix=lags,
            as_of_date=network.as_of_date,
            generated_at=network.generated_at,
            diagnostics=network.diagnostics,
        )
