"""
Prefect Workflow Orchestration - Retail Analytics

Batch workflow running the analytics pipeline stage by stage with:
- Retries on the data preparation tasks
- Per-stage logging through the Prefect run logger
- Alerting on anomalies and failures
"""

from typing import Optional

import numpy as np
import polars as pl
from prefect import flow, task, get_run_logger

from retail_dw.analytics.kpi import build_chart_series, compute_kpis
from retail_dw.analytics.olap import build_olap_summaries
from retail_dw.analytics.rfm import build_rfm
from retail_dw.config import get_settings
from retail_dw.data.generators import DataGenerator
from retail_dw.ml.clustering import describe_clusters, segment_clients
from retail_dw.ml.features import build_client_profile
from retail_dw.pipeline import AnalyticsPipeline, PipelineResult
from retail_dw.quality.anomaly_detector import detect_transaction_anomalies
from retail_dw.reporting.exporters import ResultExporter
from retail_dw.warehouse.joins import build_warehouse
from retail_dw.warehouse.schema import StarSchema

settings = get_settings()


# =============================================================================
# TASKS
# =============================================================================

@task(
    name="generate_star_schema",
    description="Generate the synthetic star schema",
    retries=2,
    retry_delay_seconds=10,
)
def generate_star_schema(seed: int) -> StarSchema:
    """Generate the dimension and fact tables"""
    logger = get_run_logger()

    rng = np.random.default_rng(seed)
    schema = DataGenerator(config=settings.generator, rng=rng).generate_all()

    logger.info(f"Generated star schema: {schema.row_counts()}")
    return schema


@task(
    name="consolidate_warehouse",
    description="Validate the star schema and build the warehouse table",
)
def consolidate_warehouse(schema: StarSchema, policy: str) -> tuple:
    """Validate, conform and join the star schema"""
    logger = get_run_logger()

    schema = AnalyticsPipeline.prepare(schema)
    warehouse = build_warehouse(schema, policy=policy)

    logger.info(
        f"Warehouse consolidated: {schema.sales.height} sales -> {warehouse.height} rows"
    )
    return schema, warehouse


@task(
    name="olap_analysis",
    description="Compute OLAP summaries and RFM",
)
def olap_analysis(warehouse: pl.DataFrame) -> dict:
    """Grouped summaries and per-client RFM"""
    logger = get_run_logger()

    summaries = build_olap_summaries(warehouse)
    rfm = build_rfm(warehouse)

    logger.info(f"OLAP complete: {len(summaries)} summaries, {rfm.height} RFM rows")
    return {"summaries": summaries, "rfm": rfm}


@task(
    name="segment_clients",
    description="Standardize client profiles and run k-means",
)
def client_segmentation(warehouse: pl.DataFrame, seed: int) -> dict:
    """Client profile, segmentation and cluster characteristics"""
    logger = get_run_logger()
    config = settings.clustering

    profile = build_client_profile(warehouse)
    segmentation = segment_clients(
        profile,
        n_clusters=config.n_clusters,
        n_init=config.n_init,
        max_iter=config.max_iter,
        rng=np.random.default_rng(seed),
    )
    cluster_summary = describe_clusters(
        profile, segmentation.assignments, n_clusters=config.n_clusters
    )

    logger.info(
        f"Segmentation complete: sizes={segmentation.result.sizes.tolist()}, "
        f"inertia={segmentation.result.inertia:.4f}"
    )
    return {
        "profile": profile,
        "segmentation": segmentation,
        "cluster_summary": cluster_summary,
    }


@task(
    name="detect_anomalies",
    description="Flag unusual transaction amounts",
)
def detect_anomalies(warehouse: pl.DataFrame, z_threshold: float):
    """Z-score anomaly detection on total_amount"""
    logger = get_run_logger()

    report = detect_transaction_anomalies(warehouse, z_threshold=z_threshold)

    logger.info(
        f"Anomaly detection: {report.anomalies_found}/{report.records_checked} flagged"
    )
    return report


@task(
    name="export_results",
    description="Write result tables to the export directory",
    retries=2,
    retry_delay_seconds=5,
)
def export_results(result: PipelineResult) -> dict:
    """Export every result table"""
    logger = get_run_logger()

    exporter = ResultExporter(
        export_dir=settings.export.export_dir,
        file_format=settings.export.file_format,
    )
    paths = exporter.export(result)

    logger.info(f"Exported {len(paths)} tables to {exporter.export_dir}")
    return {name: str(path) for name, path in paths.items()}


@task(
    name="send_alert",
    description="Send alert notification",
)
def send_alert(
    alert_type: str,
    message: str,
    severity: str = "info",
) -> None:
    """Send alert notification"""
    logger = get_run_logger()
    logger.warning(f"[{severity.upper()}] {alert_type}: {message}")


# =============================================================================
# FLOWS
# =============================================================================

@flow(
    name="retail_analytics",
    description="Batch retail analytics: warehouse, OLAP, RFM, segmentation, anomalies",
)
def retail_analytics_flow(
    seed: Optional[int] = None,
    export: Optional[bool] = None,
) -> dict:
    """
    Retail analytics pipeline.

    Steps:
    1. Generate the star schema
    2. Validate and consolidate the warehouse
    3. OLAP summaries and RFM
    4. Client segmentation
    5. Anomaly detection
    6. KPIs, chart series and export
    """
    logger = get_run_logger()

    seed = settings.generator.seed if seed is None else seed
    export = settings.export.enabled if export is None else export

    logger.info(f"Starting retail analytics flow with seed {seed}")

    results = {"seed": seed, "steps": {}}

    try:
        schema = generate_star_schema(seed)
        schema, warehouse = consolidate_warehouse(
            schema, settings.warehouse.missing_reference_policy
        )
        results["steps"]["warehouse"] = {"rows": warehouse.height}

        olap = olap_analysis(warehouse)
        segments = client_segmentation(warehouse, settings.clustering.seed)
        anomalies = detect_anomalies(warehouse, settings.anomaly.z_threshold)

        kpis = compute_kpis(warehouse)
        results["steps"]["kpis"] = kpis.to_dict()
        results["steps"]["anomalies"] = {
            "found": anomalies.anomalies_found,
            "critical": anomalies.critical_count,
        }

        if anomalies.critical_count > 0:
            send_alert(
                alert_type="Transaction Anomalies",
                message=f"Found {anomalies.critical_count} critical transaction anomalies",
                severity="warning",
            )

        if export:
            result = PipelineResult(
                schema=schema,
                warehouse=warehouse,
                summaries=olap["summaries"],
                rfm=olap["rfm"],
                profile=segments["profile"],
                segmentation=segments["segmentation"],
                cluster_summary=segments["cluster_summary"],
                anomalies=anomalies,
                kpis=kpis,
                charts=build_chart_series(warehouse, segments["segmentation"]),
            )
            results["steps"]["export"] = export_results(result)

        results["status"] = "success"

    except Exception as e:
        logger.error(f"Analytics flow failed: {e}")

        send_alert(
            alert_type="Analytics Failed",
            message=f"Retail analytics flow failed: {str(e)}",
            severity="critical",
        )

        results["status"] = "failed"
        results["error"] = str(e)
        raise

    return results


if __name__ == "__main__":
    retail_analytics_flow()
