"""
Result Exporter

Writes the pipeline's result tables to the export directory, one file per
table, as CSV or Parquet.
"""

from pathlib import Path
from typing import TYPE_CHECKING, Dict, Optional

import polars as pl
import structlog

from retail_dw.config import get_settings

if TYPE_CHECKING:
    from retail_dw.pipeline import PipelineResult

logger = structlog.get_logger(__name__)

SUPPORTED_FORMATS = ("csv", "parquet")


class ResultExporter:
    """
    Export analytics result tables.

    Example:
        exporter = ResultExporter(export_dir="exports", file_format="csv")
        paths = exporter.export(result)
    """

    def __init__(
        self,
        export_dir: Optional[str] = None,
        file_format: Optional[str] = None,
    ):
        config = get_settings().export
        self.export_dir = Path(export_dir or config.export_dir)
        self.file_format = (file_format or config.file_format).lower()

        if self.file_format not in SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported export format: {self.file_format}")

    def write_table(self, df: pl.DataFrame, name: str) -> Path:
        """Write one table and return its path"""
        self.export_dir.mkdir(parents=True, exist_ok=True)
        output_file = self.export_dir / f"{name}.{self.file_format}"

        if self.file_format == "parquet":
            df.write_parquet(output_file)
        else:
            df.write_csv(output_file)

        logger.info(f"Written {len(df)} rows to {output_file}")
        return output_file

    @staticmethod
    def warehouse_with_scores(result: "PipelineResult") -> pl.DataFrame:
        """Warehouse rows with the z-score of each sale amount appended"""
        scores = result.anomalies.scores
        if scores is None:
            return result.warehouse
        return result.warehouse.join(scores, on="id_sale", how="left")

    def export(self, result: "PipelineResult") -> Dict[str, Path]:
        """Write every result table of a pipeline run"""
        tables = {
            "warehouse_data": self.warehouse_with_scores(result),
            "rfm_analysis": result.rfm.sort(["monetary", "id_client"], descending=[True, False]),
            "sales_category": result.summaries["sales_category"],
            "sales_month": result.summaries["sales_month"],
            "store_performance": result.summaries["store_performance"],
            "client_clusters": result.profile.join(
                result.segmentation.assignments, on="id_client", how="left"
            ),
            "cluster_centroids": result.segmentation.centroids,
            "anomalies": result.anomalies.to_frame(),
        }

        paths = {name: self.write_table(df, name) for name, df in tables.items()}
        logger.info("Export complete", files=len(paths), directory=str(self.export_dir))
        return paths
