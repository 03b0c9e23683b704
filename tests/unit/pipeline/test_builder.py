"""Tests for the sequential build pipeline."""

import pytest

from iodbuild.errors import AcquisitionError, ArchiveError
from iodbuild.installer import InstallerAcquirer
from iodbuild.keys import KeyPair
from iodbuild.manifest import load_build_task
from iodbuild.pipeline import BuildPipeline, PipelineState

KEYS = KeyPair(private_key=b"private", public_key=b"public", passphrase="pw")


@pytest.fixture
def tasks(tmp_path, make_package):
    def _tasks(*names, **kwargs):
        out = tmp_path / "out"
        result = []
        for name in names:
            pkg = make_package(tmp_path / "src", name, name, **kwargs)
            result.append(load_build_task(pkg / "build.json", out))
        return result

    return _tasks


def _pipeline(archive, tmp_path, reporter):
    acquirer = InstallerAcquirer(tmp_path / "dl", reporter=reporter)
    return BuildPipeline(archive, acquirer, KEYS, reporter=reporter)


def test_builds_every_task_in_order(tmp_path, tasks, fake_archive, quiet_reporter):
    todo = tasks("one", "two", "three")
    pipeline = _pipeline(fake_archive, tmp_path, quiet_reporter)

    completed = pipeline.run(todo)

    assert pipeline.state is PipelineState.COMPLETED
    assert [t.name for t in completed] == ["one", "two", "three"]
    assert [c["name"] for c in fake_archive.created] == ["one", "two", "three"]
    for task in completed:
        assert task.produced_archive_path == task.output_path
        assert task.output_path.exists()
        assert task.resolved_installer_path == (task.source_dir / "setup.exe").resolve()


def test_every_task_gets_the_same_key_pair(tmp_path, tasks, fake_archive, quiet_reporter):
    _pipeline(fake_archive, tmp_path, quiet_reporter).run(tasks("one", "two"))

    assert all(c["key_pair"] is KEYS for c in fake_archive.created)


def test_creates_category_directories(tmp_path, tasks, fake_archive, quiet_reporter):
    todo = tasks("one", category="tools/editors")

    _pipeline(fake_archive, tmp_path, quiet_reporter).run(todo)

    assert todo[0].output_path.parent == tmp_path / "out" / "packages" / "tools" / "editors"
    assert todo[0].output_path.exists()


def test_third_of_five_failing_aborts_and_keeps_earlier_archives(
    tmp_path, tasks, failing_archive, quiet_reporter
):
    todo = tasks("p1", "p2", "p3", "p4", "p5")
    archive = failing_archive("p3")
    pipeline = _pipeline(archive, tmp_path, quiet_reporter)

    with pytest.raises(ArchiveError, match="Failed building package 'p3'") as exc_info:
        pipeline.run(todo)

    assert pipeline.state is PipelineState.ABORTED
    assert exc_info.value.context["package"] == "p3"
    assert exc_info.value.context["build_definition"].endswith("build.json")
    assert [c["name"] for c in archive.created] == ["p1", "p2", "p3"]
    assert todo[0].output_path.exists() and todo[1].output_path.exists()
    assert not todo[3].output_path.exists()
    assert [t.name for t in pipeline.completed] == ["p1", "p2"]


def test_missing_local_installer_surfaces_from_archive_creation(tmp_path, tasks, fake_archive, quiet_reporter):
    todo = tasks("one", installer_bytes=None)

    with pytest.raises(ArchiveError, match="'one'"):
        _pipeline(fake_archive, tmp_path, quiet_reporter).run(todo)


def test_acquisition_errors_propagate_unchanged(tmp_path, tasks, fake_archive, quiet_reporter):
    todo = tasks("one")
    pipeline = _pipeline(fake_archive, tmp_path, quiet_reporter)

    def _fail(task):
        raise AcquisitionError("Unable to download package: 500 Server Error")

    pipeline.acquirer.resolve = _fail

    with pytest.raises(AcquisitionError):
        pipeline.run(todo)
    assert pipeline.state is PipelineState.ABORTED
    assert fake_archive.created == []


def test_pipeline_runs_only_once(tmp_path, tasks, fake_archive, quiet_reporter):
    pipeline = _pipeline(fake_archive, tmp_path, quiet_reporter)
    pipeline.run(tasks("one"))

    with pytest.raises(RuntimeError, match="already used"):
        pipeline.run(tasks("two"))


def test_second_build_while_one_is_in_flight_is_refused(tmp_path, tasks, quiet_reporter):
    first, second = tasks("one", "two")
    holder = {}

    class ReentrantArchive:
        def create(self, package_data, installer_path, key_pair, output_path):
            try:
                holder["pipeline"].build(second)
            except RuntimeError as e:
                holder["error"] = str(e)
            output_path.write_text("ok")
            return output_path

        def read(self, archive_path):
            raise NotImplementedError

    pipeline = _pipeline(ReentrantArchive(), tmp_path, quiet_reporter)
    holder["pipeline"] = pipeline

    pipeline.build(first)

    assert holder["error"] == "build already in progress"
    assert second.produced_archive_path is None
