"""
tests/test_app.py

HTTP routes via FastAPI's TestClient with the scanner dependency overridden.
"""
import pytest
from fastapi.testclient import TestClient

from app import app, get_scanner
from core.errors import BrowserLaunchError, NavigationError
from core.models import AnalysisResult, FingerprintMethod, WelcomeMessageResult


class StubScanner:
    def __init__(self, analysis=None, welcome=None, error=None):
        self.analysis = analysis
        self.welcome = welcome
        self.error = error
        self.urls = []

    async def analyze(self, url, evaluate_welcome=None):
        self.urls.append(url)
        if self.error:
            raise self.error
        return self.analysis

    async def evaluate_welcome(self, url):
        self.urls.append(url)
        if self.error:
            raise self.error
        return self.welcome


@pytest.fixture()
def client_with():
    def make(scanner: StubScanner) -> TestClient:
        app.dependency_overrides[get_scanner] = lambda: scanner
        return TestClient(app)
    yield make
    app.dependency_overrides.clear()


class TestHealth:
    def test_ok(self, client_with) -> None:
        response = client_with(StubScanner()).get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestDetect:
    def test_vendor_with_welcome_message(self, client_with) -> None:
        analysis = AnalysisResult(
            url="https://support.example.com",
            vendor_name="ServiceNow",
            method=FingerprintMethod.GLOBAL_SCOPE,
            welcome_message=WelcomeMessageResult(evaluation="Clear intro. Score: 82/100", attempts="success", score=82),
        )
        response = client_with(StubScanner(analysis=analysis)).post(
            "/api/detect", json={"url": "https://support.example.com"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["vendorName"] == "ServiceNow"
        assert body["method"] == "globalScope"
        assert body["welcomeMessage"]["attempts"] == "success"
        assert body["welcomeMessage"]["score"] == 82

    def test_no_vendor_keeps_null_vendor_name(self, client_with) -> None:
        analysis = AnalysisResult(url="https://plain.example.com", vendor_name=None, method=FingerprintMethod.NONE)
        response = client_with(StubScanner(analysis=analysis)).post(
            "/api/detect", json={"url": "https://plain.example.com"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["vendorName"] is None
        assert body["method"] == "none"

    @pytest.mark.parametrize("payload", [{}, {"url": ""}, {"url": "   "}])
    def test_missing_url(self, client_with, payload) -> None:
        scanner = StubScanner()
        response = client_with(scanner).post("/api/detect", json=payload)

        assert response.status_code == 400
        assert response.json() == {"detail": "Missing URL"}
        assert scanner.urls == []

    @pytest.mark.parametrize("error", [BrowserLaunchError("no chromium"), NavigationError("dns failure")])
    def test_hard_errors(self, client_with, error) -> None:
        response = client_with(StubScanner(error=error)).post("/api/detect", json={"url": "https://x.example"})

        assert response.status_code == 500
        assert response.json() == {"detail": "Failed to analyze the page"}


class TestWelcomeMessage:
    def test_failed_attempt_reports_error(self, client_with) -> None:
        welcome = WelcomeMessageResult(
            evaluation="No chatbot widget found for analysis.",
            attempts="failed",
            error="No chat launcher candidates were found on the page",
        )
        response = client_with(StubScanner(welcome=welcome)).post(
            "/api/welcome-message", json={"url": "https://plain.example.com"}
        )

        assert response.status_code == 200
        assert response.json() == {
            "evaluation": "No chatbot widget found for analysis.",
            "attempts": "failed",
            "error": "No chat launcher candidates were found on the page",
        }

    def test_missing_url(self, client_with) -> None:
        response = client_with(StubScanner()).post("/api/welcome-message", json={"url": None})
        assert response.status_code == 400

    def test_hard_error(self, client_with) -> None:
        response = client_with(StubScanner(error=NavigationError("refused"))).post(
            "/api/welcome-message", json={"url": "https://x.example"}
        )
        assert response.status_code == 500
        assert response.json() == {"detail": "Failed to analyze welcome message"}
