"""Code generation settings"""

from dataclasses import dataclass, field


@dataclass
class CodegenConfig:
    """Crate features enabled for the current build"""
    enabled_features: set[str] = field(default_factory=set)

    @classmethod
    def no_features_enabled(cls) -> "CodegenConfig":
        return cls()

    @classmethod
    def from_feature_list(cls, features: str) -> "CodegenConfig":
        """Build from a comma or whitespace separated list"""
        names = {f for f in features.replace(",", " ").split() if f}
        return cls(enabled_features=names)

    def is_feature_enabled(self, feature: str) -> bool:
        return feature in self.enabled_features
