"""
Analytics Pipeline

Runs the batch from raw star schema to results:
1. Generate (or accept) the star schema
2. Validate and conform the tables
3. Consolidate the warehouse with derived metrics
4. OLAP summaries and RFM
5. Client profile, standardization and k-means segmentation
6. Transaction anomaly detection
7. KPIs and chart series
8. Optional export
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import polars as pl
import structlog

from retail_dw.analytics.kpi import ChartSeries, KPIReport, build_chart_series, compute_kpis
from retail_dw.analytics.olap import build_olap_summaries
from retail_dw.analytics.rfm import build_rfm
from retail_dw.config import Settings, get_settings
from retail_dw.config.logging import bind_run_context, clear_run_context
from retail_dw.data.generators import DataGenerator
from retail_dw.exceptions import AnalyticsError
from retail_dw.ml.clustering import ClientSegmentation, describe_clusters, segment_clients
from retail_dw.ml.features import build_client_profile
from retail_dw.quality.anomaly_detector import AnomalyDetector, AnomalyReport
from retail_dw.quality.validators import validate_star_schema
from retail_dw.reporting.exporters import ResultExporter
from retail_dw.warehouse.joins import build_warehouse
from retail_dw.warehouse.schema import StarSchema

logger = structlog.get_logger(__name__)


@dataclass
class StageResult:
    """Timing of one pipeline stage"""
    stage: str
    started_at: datetime
    completed_at: datetime

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()


@dataclass
class PipelineResult:
    """Everything one pipeline run produced"""
    schema: StarSchema
    warehouse: pl.DataFrame
    summaries: Dict[str, pl.DataFrame]
    rfm: pl.DataFrame
    profile: pl.DataFrame
    segmentation: ClientSegmentation
    cluster_summary: pl.DataFrame
    anomalies: AnomalyReport
    kpis: KPIReport
    charts: ChartSeries
    run_id: str = ""
    stages: List[StageResult] = field(default_factory=list)
    exported: Dict[str, Path] = field(default_factory=dict)


class AnalyticsPipeline:
    """
    Batch analytics pipeline orchestrator.

    Example:
        pipeline = AnalyticsPipeline()
        result = pipeline.run()
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.stages: List[StageResult] = []

    def _run_stage(self, stage: str, func: Callable[..., Any], *args, **kwargs) -> Any:
        """Run one stage, recording its timing and logging failures"""
        started_at = datetime.utcnow()
        logger.info("Stage started", stage=stage)

        try:
            output = func(*args, **kwargs)
        except AnalyticsError as e:
            logger.error(
                "Stage failed",
                stage=stage,
                error=e.message,
                error_type=type(e).__name__,
                details=e.details,
            )
            raise

        completed_at = datetime.utcnow()
        result = StageResult(stage=stage, started_at=started_at, completed_at=completed_at)
        self.stages.append(result)
        logger.info("Stage complete", stage=stage, duration_seconds=round(result.duration_seconds, 3))
        return output

    def generate(self) -> StarSchema:
        rng = np.random.default_rng(self.settings.generator.seed)
        return DataGenerator(config=self.settings.generator, rng=rng).generate_all()

    @staticmethod
    def prepare(schema: StarSchema) -> StarSchema:
        """Conform every table to its schema and run the quality checks"""
        schema = schema.conformed()
        validate_star_schema(schema)
        return schema

    def segment(self, profile: pl.DataFrame) -> ClientSegmentation:
        config = self.settings.clustering
        return segment_clients(
            profile,
            n_clusters=config.n_clusters,
            n_init=config.n_init,
            max_iter=config.max_iter,
            rng=np.random.default_rng(config.seed),
        )

    def run(
        self,
        schema: Optional[StarSchema] = None,
        export: Optional[bool] = None,
    ) -> PipelineResult:
        """
        Run every stage.

        Args:
            schema: Input star schema; generated from configuration if None
            export: Write result tables; defaults to configuration

        Raises:
            AnalyticsError: from the first failing stage
        """
        self.stages = []
        settings = self.settings
        run_id = bind_run_context(seed=settings.generator.seed if schema is None else None)
        logger.info("Starting analytics pipeline", app=settings.app_name, version=settings.version)

        try:
            result = self._run_all(schema, export)
        finally:
            clear_run_context()

        result.run_id = run_id
        return result

    def _run_all(self, schema: Optional[StarSchema], export: Optional[bool]) -> PipelineResult:
        settings = self.settings

        if schema is None:
            schema = self._run_stage("generate", self.generate)

        schema = self._run_stage("validate", self.prepare, schema)
        warehouse = self._run_stage(
            "consolidate",
            build_warehouse,
            schema,
            policy=settings.warehouse.missing_reference_policy,
        )

        summaries = self._run_stage("olap", build_olap_summaries, warehouse)
        rfm = self._run_stage("rfm", build_rfm, warehouse)

        profile = self._run_stage("client_profile", build_client_profile, warehouse)
        segmentation = self._run_stage("clustering", self.segment, profile)
        cluster_summary = self._run_stage(
            "cluster_summary",
            describe_clusters,
            profile,
            segmentation.assignments,
            n_clusters=settings.clustering.n_clusters,
        )

        detector = AnomalyDetector(z_threshold=settings.anomaly.z_threshold)
        anomalies = self._run_stage("anomaly_detection", detector.detect, warehouse)

        kpis = self._run_stage("kpi", compute_kpis, warehouse)
        charts = self._run_stage("charts", build_chart_series, warehouse, segmentation)

        result = PipelineResult(
            schema=schema,
            warehouse=warehouse,
            summaries=summaries,
            rfm=rfm,
            profile=profile,
            segmentation=segmentation,
            cluster_summary=cluster_summary,
            anomalies=anomalies,
            kpis=kpis,
            charts=charts,
        )

        if export if export is not None else settings.export.enabled:
            exporter = ResultExporter(
                export_dir=settings.export.export_dir,
                file_format=settings.export.file_format,
            )
            result.exported = self._run_stage("export", exporter.export, result)

        result.stages = list(self.stages)
        logger.info(
            "Analytics pipeline complete",
            transactions=warehouse.height,
            clients=rfm.height,
            clusters=settings.clustering.n_clusters,
            anomalies=anomalies.anomalies_found,
            duration_seconds=round(sum(s.duration_seconds for s in self.stages), 3),
        )
        return result
