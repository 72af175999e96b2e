"""Report persistence as JSON or YAML files."""

import json
from pathlib import Path
from typing import Union

import structlog
import yaml
from pydantic import ValidationError

from meshusage.core.exceptions import ConfigurationException, ReportLoadException
from meshusage.models.report_models import ClusterReport

logger = structlog.get_logger(__name__)

JSON_EXTENSIONS = (".json",)
YAML_EXTENSIONS = (".yaml", ".yml")


class ReportFileStorage:
    """Reads and writes :class:`ClusterReport` files; the format follows the extension."""

    def __init__(self):
        self.logger = logger.bind(storage="file")

    @staticmethod
    def output_path(directory: Union[str, Path], prefix: str, output_format: str) -> Path:
        return Path(directory) / f"{prefix}.{output_format}"

    def load(self, path: Union[str, Path]) -> ClusterReport:
        path = Path(path)
        if not path.exists():
            raise ReportLoadException(str(path), "file does not exist")

        extension = path.suffix.lower()
        if extension not in JSON_EXTENSIONS + YAML_EXTENSIONS:
            raise ReportLoadException(str(path), f"unsupported file extension: {extension}")

        try:
            with open(path, 'r', encoding='utf-8') as f:
                if extension in JSON_EXTENSIONS:
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ReportLoadException(str(path), f"failed to parse file: {e}")

        try:
            report = ClusterReport.from_serializable(data)
        except ValidationError as e:
            raise ReportLoadException(str(path), f"unexpected report content: {e}")

        self.logger.info("Loaded existing report", path=str(path), namespaces=len(report.namespaces))
        return report

    def save(self, report: ClusterReport, path: Union[str, Path]) -> Path:
        path = Path(path)
        extension = path.suffix.lower()
        data = report.to_serializable()

        if extension in JSON_EXTENSIONS:
            content = json.dumps(data, indent=2) + "\n"
        elif extension in YAML_EXTENSIONS:
            content = yaml.safe_dump(data, sort_keys=False, default_flow_style=False)
        else:
            raise ConfigurationException(f"unsupported output format: {extension.lstrip('.')}")

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(content)

        self.logger.info("Report saved", path=str(path))
        return path
