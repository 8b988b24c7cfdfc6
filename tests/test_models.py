"""Tests for embedding model references and the pull workflow."""

from unittest.mock import patch

import pytest

from memstack.models import ModelManager, ModelReference, parse_model_list
from memstack.utils.retry import RetryPolicy

MODEL_LIST_HEADER = "NAME                        ID              SIZE      MODIFIED"


class TestModelReference:
    def test_untagged_defaults_to_latest(self):
        ref = ModelReference.parse("mxbai-embed-large")
        assert ref == ModelReference("mxbai-embed-large", "latest")
        assert str(ref) == "mxbai-embed-large:latest"

    def test_explicit_tag(self):
        assert ModelReference.parse("nomic-embed-text:v1.5").tag == "v1.5"

    def test_registry_port_is_not_a_tag(self):
        ref = ModelReference.parse("registry.local:5000/embed")
        assert ref.name == "registry.local:5000/embed"
        assert ref.tag == "latest"

    def test_empty_reference(self):
        with pytest.raises(ValueError):
            ModelReference.parse("  ")

    def test_untagged_matches_latest(self):
        wanted = ModelReference.parse("mxbai-embed-large")
        assert wanted.matches(ModelReference.parse("mxbai-embed-large:latest"))

    def test_prefix_is_not_a_match(self):
        wanted = ModelReference.parse("mxbai-embed")
        assert not wanted.matches(ModelReference.parse("mxbai-embed-large:latest"))

    def test_different_tag_is_not_a_match(self):
        wanted = ModelReference.parse("mxbai-embed-large:v2")
        assert not wanted.matches(ModelReference.parse("mxbai-embed-large:latest"))


def test_parse_model_list_skips_header():
    output = "\n".join(
        [
            MODEL_LIST_HEADER,
            "mxbai-embed-large:latest    468836162de7    669 MB    2 days ago",
            "",
            "llama3:8b                   365c0bd3c000    4.7 GB    3 weeks ago",
        ]
    )
    refs = parse_model_list(output)
    assert [str(r) for r in refs] == ["mxbai-embed-large:latest", "llama3:8b"]


@pytest.fixture
def running_engine(engine, config):
    engine.containers[config.ollama_container] = "running"
    return engine


@pytest.fixture
def manager(running_engine, config):
    return ModelManager(running_engine, config.ollama_container, RetryPolicy(max_attempts=3, delay=5.0))


class TestModelManager:
    def test_list_models_when_runtime_down(self, engine, config):
        manager = ModelManager(engine, config.ollama_container)
        assert manager.list_models() is None
        assert manager.is_present("mxbai-embed-large") is False

    @patch("memstack.models.time.sleep")
    def test_ensure_skips_pull_when_present(self, mock_sleep, manager, running_engine):
        running_engine.models = ["mxbai-embed-large:latest"]

        status = manager.ensure("mxbai-embed-large")

        assert status.present is True
        assert status.pulled is False
        assert running_engine.pulls_attempted() == 0
        mock_sleep.assert_not_called()

    @patch("memstack.models.time.sleep")
    def test_ensure_pulls_missing_model(self, mock_sleep, manager, running_engine):
        status = manager.ensure("mxbai-embed-large")

        assert status.present is True
        assert status.pulled is True
        assert status.attempts == 1
        assert manager.is_present("mxbai-embed-large")

    @patch("memstack.models.time.sleep")
    def test_ensure_retries_then_succeeds(self, mock_sleep, manager, running_engine):
        running_engine.pull_failures = 2

        status = manager.ensure("mxbai-embed-large")

        assert status.present is True
        assert status.attempts == 3
        assert mock_sleep.call_count == 2
        mock_sleep.assert_called_with(5.0)

    @patch("memstack.models.time.sleep")
    def test_ensure_gives_up_without_raising(self, mock_sleep, manager, running_engine):
        running_engine.pull_failures = 10

        status = manager.ensure("mxbai-embed-large")

        assert status.present is False
        assert status.attempts == 3
        assert running_engine.pulls_attempted() == 3
        # No sleep after the final attempt
        assert mock_sleep.call_count == 2
