"""Tests for the service status probe and the Docker Engine client."""

import json

import httpx
import pytest

from conftest import FakeRuntime
from kaspa_aio.models.service_status import ServiceState
from kaspa_aio.services.container_runtime import ContainerSummary, DockerEngineRuntime
from kaspa_aio.services.service_status import (
    RUNTIME_UNAVAILABLE,
    ServiceStatusProbe,
    classify,
    extract_uptime,
)


# -------------------------------------------------------------------
# Classification
# -------------------------------------------------------------------


class TestClassify:
    @pytest.mark.parametrize(
        "status,expected",
        [
            ("Up 2 hours (healthy)", ServiceState.HEALTHY),
            ("Up 2 hours (unhealthy)", ServiceState.UNHEALTHY),
            ("Up 10 seconds (health: starting)", ServiceState.STARTING),
        ],
    )
    def test_health_annotations(self, status, expected):
        assert classify("running", status) == (expected, True)

    def test_running_without_health_check_is_healthy(self):
        assert classify("running", "Up 3 days") == (ServiceState.HEALTHY, False)

    @pytest.mark.parametrize("state", ["exited", "created", "paused", "restarting", "dead"])
    def test_not_running_is_stopped(self, state):
        assert classify(state, "Exited (0) 2 minutes ago") == (ServiceState.STOPPED, False)


class TestExtractUptime:
    def test_multi_word_uptime(self):
        assert extract_uptime("Up 2 hours (healthy)") == "2 hours"

    def test_without_annotation(self):
        assert extract_uptime("Up About a minute") == "About a minute"

    def test_not_running(self):
        assert extract_uptime("Exited (1) 3 minutes ago") is None


# -------------------------------------------------------------------
# Probe
# -------------------------------------------------------------------


class TestServiceStatusProbe:
    async def test_runtime_unavailable_reports_every_service_not_found(self):
        probe = ServiceStatusProbe(FakeRuntime(available=False))

        statuses = await probe.get_status(["kaspa-node", "dashboard"])

        assert [s.name for s in statuses] == ["kaspa-node", "dashboard"]
        assert all(s.status == ServiceState.NOT_FOUND for s in statuses)
        assert all(s.error == RUNTIME_UNAVAILABLE for s in statuses)

    async def test_status_in_request_order(self, fake_runtime):
        probe = ServiceStatusProbe(fake_runtime)

        statuses = await probe.get_status(["k-social", "kaspa-node", "kasia-app", "kaspa-stratum"])

        assert [(s.name, s.status) for s in statuses] == [
            ("k-social", ServiceState.STOPPED),
            ("kaspa-node", ServiceState.HEALTHY),
            ("kasia-app", ServiceState.HEALTHY),
            ("kaspa-stratum", ServiceState.NOT_FOUND),
        ]

    async def test_detail_fields(self, fake_runtime):
        probe = ServiceStatusProbe(fake_runtime)

        status = await probe.get_detail("kaspa-node")

        assert status.container_name == "kaspa-node"
        assert status.health_check is True
        assert status.uptime == "2 hours"
        assert status.last_checked.tzinfo is not None
        assert status.error is None

    async def test_stopped_container_has_no_uptime(self, fake_runtime):
        status = await ServiceStatusProbe(fake_runtime).get_detail("k-social")
        assert status.status == ServiceState.STOPPED
        assert status.uptime is None

    async def test_status_serializes_camel_case(self, fake_runtime):
        status = await ServiceStatusProbe(fake_runtime).get_detail("kasia-app")
        document = status.model_dump(mode="json", by_alias=True)

        assert document["containerName"] == "kasia-app"
        assert document["healthCheck"] is False
        assert "lastChecked" in document

    async def test_availability_is_cached(self, fake_runtime):
        probe = ServiceStatusProbe(fake_runtime, availability_ttl=60)

        await probe.get_status(["kaspa-node"])
        await probe.get_status(["kaspa-node"])
        assert fake_runtime.ping_calls == 1

        probe.clear_cache()
        await probe.is_runtime_available()
        assert fake_runtime.ping_calls == 2

    async def test_unavailability_is_cached_too(self):
        runtime = FakeRuntime(available=False)
        probe = ServiceStatusProbe(runtime, availability_ttl=60)

        assert await probe.is_runtime_available() is False
        runtime.available = True
        assert await probe.is_runtime_available() is False
        assert runtime.ping_calls == 1

    async def test_lookup_failure_is_reported_not_raised(self, fake_runtime):
        async def broken(name):
            raise httpx.ReadTimeout("read timed out")

        fake_runtime.list_containers = broken
        status = await ServiceStatusProbe(fake_runtime).get_detail("kaspa-node")

        assert status.status == ServiceState.NOT_FOUND
        assert "read timed out" in status.error

    @pytest.mark.parametrize("names", ["kaspa-node", None, {"kaspa-node"}, ["kaspa-node", 3], [""]])
    async def test_get_status_rejects_bad_arguments(self, fake_runtime, names):
        with pytest.raises(TypeError):
            await ServiceStatusProbe(fake_runtime).get_status(names)

    async def test_get_detail_rejects_bad_names(self, fake_runtime):
        probe = ServiceStatusProbe(fake_runtime)
        with pytest.raises(TypeError):
            await probe.get_detail(None)
        with pytest.raises(ValueError):
            await probe.get_detail("")


# -------------------------------------------------------------------
# Docker Engine API client
# -------------------------------------------------------------------


def docker_handler(containers):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/_ping":
            return httpx.Response(200, text="OK")
        if request.url.path == "/containers/json":
            return httpx.Response(200, json=containers)
        return httpx.Response(404)

    return handler


class TestDockerEngineRuntime:
    async def test_list_containers_filters_by_exact_name(self):
        requests = []
        containers = [
            {"Names": ["/kaspa-node"], "State": "running", "Status": "Up 1 hour (healthy)"},
            {"Names": ["/kaspa-node-backup"], "State": "exited", "Status": "Exited (0) 1 day ago"},
        ]

        def handler(request):
            requests.append(request)
            return docker_handler(containers)(request)

        runtime = DockerEngineRuntime(transport=httpx.MockTransport(handler))
        result = await runtime.list_containers("kaspa-node")

        assert result == [ContainerSummary(name="kaspa-node", state="running", status="Up 1 hour (healthy)")]
        params = requests[0].url.params
        assert params["all"] == "true"
        assert json.loads(params["filters"]) == {"name": ["^/kaspa-node$"]}
        await runtime.close()

    async def test_name_filter_is_escaped(self):
        requests = []

        def handler(request):
            requests.append(request)
            return docker_handler([])(request)

        runtime = DockerEngineRuntime(transport=httpx.MockTransport(handler))
        await runtime.list_containers("kaspa.node+1")

        assert json.loads(requests[0].url.params["filters"]) == {"name": [r"^/kaspa\.node\+1$"]}
        await runtime.close()

    async def test_ping(self):
        runtime = DockerEngineRuntime(transport=httpx.MockTransport(docker_handler([])))
        await runtime.ping()
        await runtime.close()

    async def test_ping_failure_raises(self):
        def handler(request):
            return httpx.Response(500, text="daemon error")

        runtime = DockerEngineRuntime(transport=httpx.MockTransport(handler))
        with pytest.raises(httpx.HTTPStatusError):
            await runtime.ping()
        await runtime.close()

    async def test_probe_over_docker_api(self):
        containers = [{"Names": ["/kaspa-node"], "State": "running", "Status": "Up 5 minutes"}]
        runtime = DockerEngineRuntime(transport=httpx.MockTransport(docker_handler(containers)))
        probe = ServiceStatusProbe(runtime)

        [status] = await probe.get_status(["kaspa-node"])

        assert status.status == ServiceState.HEALTHY
        assert status.health_check is False
        assert status.uptime == "5 minutes"
        await runtime.close()
