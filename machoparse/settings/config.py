"""Types for the configuration of machoparse-dump"""

from pathlib import Path

from pydantic import AliasChoices, BaseModel, Field
import ruamel.yaml


_yaml = ruamel.yaml.YAML()


class YmlFileModel(BaseModel):
    @classmethod
    def from_file(cls, filename: Path):
        with filename.open("r") as f:
            return cls.model_validate(_yaml.load(f))

    @classmethod
    def from_str(cls, yaml: str):
        return cls.model_validate(_yaml.load(yaml))

    def write_file(self, filename: Path):
        with filename.open("w") as f:
            _yaml.dump(data=self.model_dump(mode="json"), stream=f)


class DumpConfig(YmlFileModel):
    """File schema for machoparse.yml"""

    show_data: bool = Field(
        default=False, validation_alias=AliasChoices("show-data", "show_data")
    )
    max_data_bytes: int = Field(
        default=32,
        ge=0,
        validation_alias=AliasChoices("max-data-bytes", "max_data_bytes"),
    )
    # Command types to print. Empty means all of them.
    commands: list[str] = Field(default_factory=list)
    color: bool = True

    @classmethod
    def default(cls) -> "DumpConfig":
        return cls()

    def wants_command(self, type_name: str) -> bool:
        return not self.commands or type_name in self.commands
