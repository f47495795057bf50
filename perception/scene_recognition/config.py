"""
Startup configuration of the scene inference engine.
"""

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .errors import ConfigurationError


REQUIRED_PARAMETERS = (
    "plot",
    "object_topic",
    "scene_graph_topic",
    "scene_model_filename",
    "base_frame_id",
    "scale_factor",
    "sigma_multiplicator",
    "targeting_help",
    "inference_algorithm",
)

CONFIG_SECTION = "scene_inference"


@dataclass
class EngineConfig:
    """
    Engine parameters.

    Attributes:
        plot: Draw the likelihood bar chart every cycle
        object_topic: Archive topic carrying observations (stack mode)
        scene_graph_topic: Archive topic carrying example scene graphs
        scene_model_filename: XML scene model to load
        base_frame_id: Frame all evidence is transformed into
        scale_factor: Scale applied to visualization markers
        sigma_multiplicator: Kernel ellipsoid size in standard deviations
        targeting_help: Draw in targeting mode instead of inference mode
        inference_algorithm: Algorithm used by every scene
        bag_filenames_list: Archives with example scene graphs to learn from
        bag_path: Archive replayed by stack mode
        update_rate: Cycles per second in continuous mode
        plot_output: PNG path the bar chart is written to
        metrics_port: Port of the Prometheus endpoint, disabled if None
        default_class_counter: Pseudo-count of unseen object types seeded on learning
    """
    plot: bool
    object_topic: str
    scene_graph_topic: str
    scene_model_filename: str
    base_frame_id: str
    scale_factor: float
    sigma_multiplicator: float
    targeting_help: bool
    inference_algorithm: str
    bag_filenames_list: List[str] = field(default_factory=list)
    bag_path: Optional[str] = None
    update_rate: float = 1.0
    plot_output: Optional[str] = None
    metrics_port: Optional[int] = None
    default_class_counter: float = 1.0

    def __post_init__(self) -> None:
        """Normalize the archive list and validate numeric parameters."""
        if self.bag_filenames_list is None:
            self.bag_filenames_list = []
        elif isinstance(self.bag_filenames_list, str):
            self.bag_filenames_list = [self.bag_filenames_list] if self.bag_filenames_list else []
        elif isinstance(self.bag_filenames_list, (list, tuple)):
            if not all(isinstance(p, str) for p in self.bag_filenames_list):
                raise ConfigurationError(
                    "Parameter bag_filenames_list must contain only strings"
                )
            self.bag_filenames_list = list(self.bag_filenames_list)
        else:
            raise ConfigurationError(
                "Parameter bag_filenames_list must be a string or a list of strings, "
                f"got {type(self.bag_filenames_list).__name__}"
            )

        try:
            self.scale_factor = float(self.scale_factor)
            self.sigma_multiplicator = float(self.sigma_multiplicator)
            self.update_rate = float(self.update_rate)
            self.default_class_counter = float(self.default_class_counter)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid numeric parameter: {e}") from e

        if self.update_rate <= 0:
            raise ConfigurationError(f"Parameter update_rate must be positive, got {self.update_rate}")
        if self.default_class_counter < 0:
            raise ConfigurationError(
                f"Parameter default_class_counter must not be negative, got {self.default_class_counter}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """
        Create a configuration from a mapping.

        Raises:
            ConfigurationError: If a required parameter is missing
        """
        for name in REQUIRED_PARAMETERS:
            if name not in data:
                raise ConfigurationError(f"Please specify parameter {name} when starting this node.")

        known = set(cls.__dataclass_fields__)
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "EngineConfig":
        """Load a configuration file, using its scene_inference section if present."""
        path = Path(path)
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Malformed configuration {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration {path} must be a mapping")
        if isinstance(data.get(CONFIG_SECTION), dict):
            data = data[CONFIG_SECTION]
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


__all__ = ['EngineConfig', 'REQUIRED_PARAMETERS']
