"""HTTP tests for the upload, listing and conversion endpoints.

The store points at a temporary directory and the transcoder is a fake that
writes a small file, so neither ffmpeg nor ffprobe is needed.
"""

import os
import time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from reelforge.dependencies import get_project_store, get_transcoder
from reelforge.main import app
from reelforge.modules.project.store import ProjectStore
from reelforge.modules.transcoding.ffmpeg import TranscodeOutput
from reelforge.modules.transcoding.models import ConversionFailedError, ConversionJob
from reelforge.modules.transcoding.schemas import ProbeSummary


PROBE = ProbeSummary(
    resolution="720x1280",
    duration_seconds=4.0,
    codec_name="h264",
    bitrate_bps=900_000,
    frame_rate=24.0,
)


class FakeTranscoder:
    def __init__(self):
        self.jobs: list[ConversionJob] = []
        self.error = None

    async def transcode(self, job: ConversionJob) -> TranscodeOutput:
        self.jobs.append(job)
        if self.error is not None:
            raise self.error
        os.makedirs(os.path.dirname(job.output_path), exist_ok=True)
        with open(job.output_path, "wb") as f:
            f.write(b"rendered")
        return TranscodeOutput(output_path=job.output_path, file_size=8, elapsed_seconds=0.01)


@pytest.fixture
def store(tmp_path: Path) -> ProjectStore:
    return ProjectStore(tmp_path / "input", prober=lambda path: PROBE)


@pytest.fixture
def transcoder() -> FakeTranscoder:
    return FakeTranscoder()


@pytest.fixture
def client(store: ProjectStore, transcoder: FakeTranscoder):
    app.dependency_overrides[get_project_store] = lambda: store
    app.dependency_overrides[get_transcoder] = lambda: transcoder
    yield TestClient(app)
    app.dependency_overrides.clear()


def upload(client: TestClient, *names: str):
    files = [("videos", (name, b"source-bytes", "video/mp4")) for name in names]
    return client.post("/api/upload", files=files)


class TestHealthAndProfiles:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json() == {"ok": True}

    def test_profiles_in_declaration_order(self, client: TestClient) -> None:
        response = client.get("/api/profiles")

        assert response.status_code == 200
        profiles = response.json()
        assert [p["id"] for p in profiles] == ["statusSaver", "storyLite", "storyFull"]
        assert profiles[2] == {
            "id": "storyFull",
            "label": "Story Full HD 9:16",
            "width": 1080,
            "height": 1920,
            "crf": 23,
            "format": "mp4",
            "fps": 30,
        }

    def test_correlation_id_is_echoed(self, client: TestClient) -> None:
        response = client.get("/api/health", headers={"X-Correlation-ID": "abc-123"})

        assert response.headers["X-Correlation-ID"] == "abc-123"

    def test_malformed_correlation_id_is_replaced(self, client: TestClient) -> None:
        response = client.get("/api/health", headers={"X-Correlation-ID": "bad id with spaces"})

        assert response.headers["X-Correlation-ID"] != "bad id with spaces"
        assert len(response.headers["X-Correlation-ID"]) == 36

    def test_metrics_are_exposed(self, client: TestClient) -> None:
        client.get("/api/health")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text


class TestUpload:
    def test_upload_creates_one_project_per_file(self, client: TestClient, store: ProjectStore) -> None:
        response = upload(client, "First Clip.mp4", "second.MOV")

        assert response.status_code == 200
        projects = response.json()["projects"]
        assert [p["filename"] for p in projects] == ["First Clip.mp4", "second.MOV"]
        assert [p["stored_name"] for p in projects] == ["First-Clip.mp4", "second.mov"]
        assert all(p["id"].startswith("dir-video-") for p in projects)
        assert projects[0]["path"] == f"/media/input/{projects[0]['id']}/First-Clip.mp4"
        assert projects[0]["size"] == len(b"source-bytes")
        assert projects[0]["probe"]["codec_name"] == "h264"
        assert projects[0]["outputs"] == []
        assert len(store.list_projects()) == 2

    def test_bad_extension_is_rejected_and_nothing_stored(self, client: TestClient, store: ProjectStore) -> None:
        response = upload(client, "good.mp4", "notes.txt")

        assert response.status_code == 400
        assert response.json() == {"detail": "Unsupported file type"}
        assert store.list_projects() == []

    def test_payload_without_videos_is_rejected(self, client: TestClient) -> None:
        response = client.post("/api/upload", files={"other": ("a.mp4", b"x", "video/mp4")})

        assert response.status_code == 400
        assert response.json() == {"detail": "No videos found in upload payload."}

    def test_too_many_files_are_rejected(self, client: TestClient) -> None:
        response = upload(client, *[f"clip{i}.mp4" for i in range(11)])

        assert response.status_code == 400


class TestListing:
    def test_list_and_get_project(self, client: TestClient) -> None:
        project_id = upload(client, "clip.mp4").json()["projects"][0]["id"]

        listed = client.get("/api/videos").json()["videos"]
        single = client.get(f"/api/videos/{project_id}")

        assert [p["id"] for p in listed] == [project_id]
        assert single.status_code == 200
        assert single.json()["stored_name"] == "clip.mp4"

    def test_unknown_project_is_404(self, client: TestClient) -> None:
        response = client.get("/api/videos/dir-video-missing")

        assert response.status_code == 404
        assert response.json() == {"detail": "Project not found"}

    def test_deleted_source_disappears_from_listing(self, client: TestClient, store: ProjectStore) -> None:
        kept, gone = [p["id"] for p in upload(client, "kept.mp4", "gone.mp4").json()["projects"]]
        os.remove(store.root / gone / "gone.mp4")

        listed = client.get("/api/videos").json()["videos"]

        assert [p["id"] for p in listed] == [kept]
        assert client.get(f"/api/videos/{gone}").status_code == 404

    def test_unknown_api_route_is_404(self, client: TestClient) -> None:
        assert client.get("/api/nothing-here").status_code == 404


class TestConvert:
    def test_convert_returns_output(self, client: TestClient) -> None:
        project_id = upload(client, "clip.mp4").json()["projects"][0]["id"]

        response = client.post("/api/convert", json={"projectId": project_id, "profileId": "storyFull"})

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Conversion complete"
        output = body["output"]
        assert output["project_id"] == project_id
        assert output["filename"].startswith("clip-mp4-")
        assert output["path"] == f"/media/input/{project_id}/outputs/{output['filename']}"
        assert output["size"] == len(b"rendered")
        assert output["probe"]["resolution"] == "720x1280"

    def test_profile_settings_reach_transcoder(self, client: TestClient, transcoder: FakeTranscoder) -> None:
        project_id = upload(client, "clip.mp4").json()["projects"][0]["id"]

        client.post(
            "/api/convert",
            json={"projectId": project_id, "profileId": "storyFull", "format": "webm", "width": 100},
        )

        job = transcoder.jobs[0]
        assert (job.width, job.height, job.crf, job.format.value, job.fps) == (1080, 1920, 23, "webm", 30)

    def test_unsupported_format_is_400_without_spawning(
        self, client: TestClient, transcoder: FakeTranscoder
    ) -> None:
        project_id = upload(client, "clip.mp4").json()["projects"][0]["id"]

        response = client.post("/api/convert", json={"projectId": project_id, "format": "avi"})

        assert response.status_code == 400
        assert response.json() == {"detail": "Unsupported format: avi"}
        assert transcoder.jobs == []

    def test_missing_project_id_is_400(self, client: TestClient) -> None:
        response = client.post("/api/convert", json={"format": "mp4"})

        assert response.status_code == 400
        assert response.json() == {"detail": "projectId is required"}

    def test_unknown_project_is_404(self, client: TestClient, transcoder: FakeTranscoder) -> None:
        response = client.post("/api/convert", json={"projectId": "dir-video-missing"})

        assert response.status_code == 404
        assert transcoder.jobs == []

    def test_conversion_failure_is_500_with_diagnostics(
        self, client: TestClient, transcoder: FakeTranscoder
    ) -> None:
        project_id = upload(client, "clip.mp4").json()["projects"][0]["id"]
        transcoder.error = ConversionFailedError("ffmpeg exited with code 1", returncode=1, diagnostics="moov atom not found")

        response = client.post("/api/convert", json={"projectId": project_id})

        assert response.status_code == 500
        assert response.json() == {"detail": {"message": "Conversion failed", "details": "moov atom not found"}}

    def test_two_conversions_listed_newest_first(self, client: TestClient, store: ProjectStore) -> None:
        project_id = upload(client, "clip.mp4").json()["projects"][0]["id"]

        first = client.post("/api/convert", json={"projectId": project_id}).json()["output"]["filename"]
        second = client.post("/api/convert", json={"projectId": project_id}).json()["output"]["filename"]
        past = time.time() - 60
        os.utime(store.outputs_dir(project_id) / first, (past, past))

        project = client.get(f"/api/videos/{project_id}").json()
        history = client.get("/api/output").json()["videos"]

        assert first != second
        assert [o["filename"] for o in project["outputs"]] == [second, first]
        assert [o["filename"] for o in history] == [second, first]
        assert history[0]["project_id"] == project_id
        assert history[0]["source"] == {"filename": "clip.mp4", "path": project["path"]}
