import json
from pathlib import Path

import yaml
from click.testing import CliRunner

from api_doc_reader.cli import main

FIXTURES = Path(__file__).parent / "fixtures"


class TestCliGenerate:
    def test_generate_from_class_to_file(self, tmp_path):
        output_file = tmp_path / "api.json"
        runner = CliRunner()
        result = runner.invoke(main, [
            "generate", "sample_api:AnApiWithInheritance",
            "-o", str(output_file),
        ])

        assert result.exit_code == 0, result.output
        assert output_file.exists()
        doc = json.loads(output_file.read_text())
        assert doc["swagger"] == "2.0"
        assert "/apath/abstract" in doc["paths"]
        assert "allOf" in doc["definitions"]["SomeResponseWithAbstractInheritance"]
        assert "API description saved to" in result.output

    def test_generate_to_stdout(self):
        runner = CliRunner()
        result = runner.invoke(main, ["generate", "sample_api:AnApi"])

        assert result.exit_code == 0
        assert '"swagger": "2.0"' in result.output
        assert '"/apath"' in result.output

    def test_generate_yaml_from_descriptor_file(self, tmp_path):
        output_file = tmp_path / "api.yaml"
        runner = CliRunner()
        result = runner.invoke(main, [
            "generate", str(FIXTURES / "inheritance_api.yaml"),
            "-o", str(output_file),
            "--format", "yaml",
        ])

        assert result.exit_code == 0, result.output
        doc = yaml.safe_load(output_file.read_text())
        assert "/inheritance/search/{name}" in doc["paths"]
        assert doc["tags"][0]["name"] == "atag"

    def test_generate_whole_module(self, tmp_path):
        output_file = tmp_path / "api.json"
        runner = CliRunner()
        result = runner.invoke(main, ["generate", "sample_api", "-o", str(output_file)])

        assert result.exit_code == 0, result.output
        doc = json.loads(output_file.read_text())
        assert "/pages" in doc["paths"]
        assert "/hidden/path" not in doc["paths"]

    def test_config_and_overrides(self, tmp_path):
        output_file = tmp_path / "api.json"
        runner = CliRunner()
        result = runner.invoke(main, [
            "generate", "sample_api:HiddenApi",
            "--config", str(FIXTURES / "settings.yaml"),
            "--include-hidden",
            "--base-path", "/v3",
            "-o", str(output_file),
        ])

        assert result.exit_code == 0, result.output
        doc = json.loads(output_file.read_text())
        assert doc["info"] == {"title": "Pet Store", "version": "2.1"}
        assert doc["basePath"] == "/v3"
        assert doc["paths"]["/hidden/path"]["get"]["x-hidden"] is True

    def test_environment_variables(self, tmp_path):
        output_file = tmp_path / "api.json"
        runner = CliRunner()
        result = runner.invoke(
            main,
            ["generate", "sample_api:HiddenApi", "-o", str(output_file)],
            env={"API_DOC_READ_HIDDEN": "1", "API_DOC_BASE_PATH": "/env"},
        )

        assert result.exit_code == 0, result.output
        doc = json.loads(output_file.read_text())
        assert doc["basePath"] == "/env"
        assert "/hidden/path" in doc["paths"]

    def test_warnings_are_reported(self, tmp_path):
        runner = CliRunner()
        result = runner.invoke(main, [
            "generate", "sample_api:AnApiWithConflict",
            "-o", str(tmp_path / "api.json"),
        ])

        assert result.exit_code == 0
        assert "warning: ModelConflict" in result.output
        assert "Found 1 operations" in result.output


class TestCliErrors:
    def test_unknown_module(self):
        runner = CliRunner()
        result = runner.invoke(main, ["generate", "no_such_module_here"])
        assert result.exit_code != 0
        assert "cannot import" in result.output

    def test_unknown_attribute(self):
        runner = CliRunner()
        result = runner.invoke(main, ["generate", "sample_api:Missing"])
        assert result.exit_code != 0
        assert "has no attribute Missing" in result.output

    def test_broken_descriptor_file(self, tmp_path):
        broken = tmp_path / "types.yaml"
        broken.write_text("something: else\n")
        runner = CliRunner()
        result = runner.invoke(main, ["generate", str(broken)])
        assert result.exit_code != 0
        assert "'types' list" in result.output

    def test_targets_are_required(self):
        runner = CliRunner()
        result = runner.invoke(main, ["generate"])
        assert result.exit_code != 0
