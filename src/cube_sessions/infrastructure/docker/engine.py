"""Docker-backed container engine gateway driven through the Docker CLI."""

from __future__ import annotations

import json
import logging
import subprocess
from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any, NoReturn

from cube_sessions.application.ports.container_engine import ContainerEnginePort
from cube_sessions.domain.container import (
    ContainerState,
    ContainerSummary,
    ImageInfo,
    PublishedPort,
)
from cube_sessions.domain.session import PortBinding, Protocol
from cube_sessions.errors import NotFoundError, UpstreamError

logger = logging.getLogger("cube_sessions.docker")

UNTAGGED = "<none>"
_ZERO_TIME_PREFIX = "0001-01-01"
_NOT_FOUND_MARKERS = ("No such container", "No such object")


class DockerContainerEngine(ContainerEnginePort):
    """Runs session containers using the Docker CLI.

    ``command_runner`` follows the ``subprocess.run`` signature so tests can
    record invocations and script failures without a Docker daemon.
    """

    def __init__(
        self,
        *,
        docker_binary: str = "docker",
        publish_host: str = "0.0.0.0",  # noqa: S104
        pull_policy: str | None = "missing",
        stop_timeout_seconds: int = 10,
        command_timeout_seconds: float | None = 120.0,
        command_runner: Callable[..., subprocess.CompletedProcess[str]] | None = None,
    ) -> None:
        self._docker = docker_binary
        self._publish_host = publish_host
        self._pull_policy = pull_policy
        self._stop_timeout = stop_timeout_seconds
        self._command_timeout = command_timeout_seconds
        self._run = command_runner or self._default_run

    # --- lifecycle ---

    def create_and_start(self, image: str, bindings: Sequence[PortBinding]) -> str:
        container_id = self._create(image, bindings)
        try:
            self._invoke([self._docker, "start", container_id], action="docker start")
        except UpstreamError:
            # start failed: drop the created container
            self._best_effort_remove(container_id)
            raise
        logger.info(
            "started session container",
            extra={"data": {"container": container_id, "image": image}},
        )
        return container_id

    def _create(self, image: str, bindings: Sequence[PortBinding]) -> str:
        args = [self._docker, "create"]
        if self._pull_policy:
            args.extend(["--pull", self._pull_policy])
        for binding in bindings:
            args.extend(["-p", self._publish_spec(binding)])
        args.append(image)

        logger.info(
            "creating session container",
            extra={
                "data": {
                    "image": image,
                    "pull_policy": self._pull_policy,
                    "ports": [self._publish_spec(binding) for binding in bindings],
                }
            },
        )
        result = self._invoke(args, action="docker create")
        lines = [line.strip() for line in (result.stdout or "").splitlines() if line.strip()]
        if not lines:
            raise UpstreamError("docker create did not return a container identifier")
        return lines[-1]

    def _publish_spec(self, binding: PortBinding) -> str:
        return (
            f"{self._publish_host}:{binding.host_port}:"
            f"{binding.container_port}/{binding.protocol.value}"
        )

    def stop(self, container_id: str) -> None:
        logger.info("stopping session container", extra={"data": {"container": container_id}})
        self._invoke(
            [self._docker, "stop", "-t", str(self._stop_timeout), container_id],
            action="docker stop",
        )

    def remove(self, container_id: str, *, force: bool = True) -> None:
        args = [self._docker, "rm"]
        if force:
            args.append("-f")
        args.append(container_id)
        logger.info("removing session container", extra={"data": {"container": container_id}})
        self._invoke(args, action="docker rm")

    def _best_effort_remove(self, container_id: str) -> None:
        try:
            self.remove(container_id, force=True)
        except UpstreamError as exc:
            logger.warning(
                "docker rm failed (ignored): %s",
                exc,
                extra={"data": {"container": container_id}},
            )

    # --- queries ---

    def exists(self, container_id: str) -> bool:
        result = self._invoke(
            [
                self._docker,
                "ps",
                "-a",
                "-q",
                "--no-trunc",
                "--filter",
                f"id={container_id}",
            ],
            action="docker ps",
        )
        return bool((result.stdout or "").strip())

    def inspect(self, container_id: str) -> ContainerState:
        args = [self._docker, "inspect", "--type", "container", container_id]
        try:
            result = self._run(args, **self._run_kwargs())
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip()
            if any(marker in stderr for marker in _NOT_FOUND_MARKERS):
                raise NotFoundError(f"container {container_id} not found") from exc
            self._raise_command_error(exc, args, action="docker inspect")
        except (OSError, subprocess.TimeoutExpired) as exc:
            self._raise_invocation_error(exc, args, action="docker inspect")

        document = _first_document(_load_json(result.stdout, action="docker inspect"))
        state = document.get("State") or {}
        return ContainerState(
            running=bool(state.get("Running", False)),
            started_at=parse_docker_time(state.get("StartedAt")),
            restart_count=int(document.get("RestartCount") or 0),
            status=str(state.get("Status") or ""),
        )

    def list_images(self) -> list[ImageInfo]:
        listing = self._invoke(
            [self._docker, "image", "ls", "-q", "--no-trunc"],
            action="docker image ls",
        )
        lines = (line.strip() for line in (listing.stdout or "").splitlines())
        image_ids = list(dict.fromkeys(line for line in lines if line))
        if not image_ids:
            return []

        inspected = self._invoke(
            [self._docker, "image", "inspect", *image_ids],
            action="docker image inspect",
        )
        documents = _load_json(inspected.stdout, action="docker image inspect")
        if not isinstance(documents, list):
            raise UpstreamError("docker image inspect returned an unexpected payload")
        return [
            image
            for document in documents
            if isinstance(document, Mapping)
            for image in _image_infos(document)
        ]

    def list_containers(self, *, include_all: bool = True) -> list[ContainerSummary]:
        args = [self._docker, "ps"]
        if include_all:
            args.append("-a")
        args.extend(["--no-trunc", "--format", "{{json .}}"])
        result = self._invoke(args, action="docker ps")

        containers: list[ContainerSummary] = []
        for line in (result.stdout or "").splitlines():
            if not line.strip():
                continue
            row = _load_json(line, action="docker ps")
            if isinstance(row, Mapping):
                containers.append(_container_summary(row))
        return containers

    # --- command plumbing ---

    def _run_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"capture_output": True, "text": True, "check": True}
        if self._command_timeout is not None:
            kwargs["timeout"] = self._command_timeout
        return kwargs

    def _invoke(self, args: list[str], *, action: str) -> subprocess.CompletedProcess[str]:
        try:
            return self._run(args, **self._run_kwargs())
        except subprocess.CalledProcessError as exc:
            self._raise_command_error(exc, args, action=action)
        except (OSError, subprocess.TimeoutExpired) as exc:
            self._raise_invocation_error(exc, args, action=action)

    def _raise_command_error(
        self,
        exc: subprocess.CalledProcessError,
        args: list[str],
        *,
        action: str,
    ) -> NoReturn:
        cmd_str = " ".join(str(part) for part in (exc.cmd or args))
        stdout = (exc.stdout or "").strip()
        stderr = (exc.stderr or "").strip()
        context_bits = []
        if stdout:
            context_bits.append(f"stdout={stdout}")
        if stderr:
            context_bits.append(f"stderr={stderr}")
        details = f" {' | '.join(context_bits)}" if context_bits else ""
        logger.error(
            "%s failed (returncode=%s)%s",
            action,
            exc.returncode,
            details,
            extra={"data": {"docker_cmd": cmd_str}},
        )
        raise UpstreamError(
            f"{action} failed (returncode={exc.returncode}) stderr={stderr}"
        ) from exc

    def _raise_invocation_error(
        self,
        exc: OSError | subprocess.TimeoutExpired,
        args: list[str],
        *,
        action: str,
    ) -> NoReturn:
        cmd_str = " ".join(str(part) for part in args)
        logger.error(
            "%s could not be executed: %s",
            action,
            exc,
            extra={"data": {"docker_cmd": cmd_str}},
        )
        raise UpstreamError(f"{action} could not be executed: {exc}") from exc

    @staticmethod
    def _default_run(
        *args: Any,
        **kwargs: Any,
    ) -> subprocess.CompletedProcess[str]:  # pragma: no cover - thin wrapper
        return subprocess.run(*args, **kwargs)  # noqa: S603


# --- parsing helpers ---


def _load_json(raw: str | None, *, action: str) -> Any:
    try:
        return json.loads(raw or "")
    except json.JSONDecodeError as exc:
        raise UpstreamError(f"{action} returned malformed JSON") from exc


def _first_document(payload: Any) -> Mapping[str, Any]:
    if isinstance(payload, list) and payload and isinstance(payload[0], Mapping):
        return payload[0]
    if isinstance(payload, Mapping):
        return payload
    raise UpstreamError("docker inspect returned an unexpected payload")


def parse_docker_time(value: str | None) -> datetime | None:
    """Parse Docker's RFC3339Nano timestamps; the zero time maps to ``None``."""
    if not value or value.startswith(_ZERO_TIME_PREFIX):
        return None
    text = value.strip().replace("Z", "+00:00")
    head, dot, rest = text.partition(".")
    if dot:
        offset = rest.lstrip("0123456789")
        digits = rest[: len(rest) - len(offset)]
        text = f"{head}.{digits[:6].ljust(6, '0')}{offset}"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.debug("unparseable docker timestamp %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def split_repo_tag(repo_tag: str) -> tuple[str, str]:
    repository, sep, tag = repo_tag.rpartition(":")
    if not sep or "/" in tag:
        return repo_tag, UNTAGGED
    return repository, tag


def format_size(size_bytes: int | float) -> str:
    return f"{float(size_bytes) / (1024 * 1024):.2f} MB"


def parse_exposed_ports(exposed: Mapping[str, Any] | None) -> tuple[int, ...]:
    ports: set[int] = set()
    for key in exposed or {}:
        number, _, _ = str(key).partition("/")
        if number.isdigit():
            ports.add(int(number))
    return tuple(sorted(ports))


def _image_infos(document: Mapping[str, Any]) -> list[ImageInfo]:
    """One row per repository tag, matching `docker images`; untagged images get a single row."""
    repo_tags = document.get("RepoTags") or []
    names = [split_repo_tag(str(repo_tag)) for repo_tag in repo_tags] or [(UNTAGGED, UNTAGGED)]

    created_at = parse_docker_time(document.get("Created"))
    config = document.get("Config") or {}
    image_id = str(document.get("Id", ""))
    size = format_size(document.get("Size") or 0)
    created = created_at.strftime("%Y-%m-%dT%H:%M:%SZ") if created_at else ""
    exposed_ports = parse_exposed_ports(config.get("ExposedPorts"))
    return [
        ImageInfo(
            image_id=image_id,
            repository=repository,
            tag=tag,
            size=size,
            created=created,
            exposed_ports=exposed_ports,
        )
        for repository, tag in names
    ]


def parse_published_ports(raw: str | None) -> tuple[PublishedPort, ...]:
    """Parse ``docker ps`` port columns such as ``0.0.0.0:49153->80/tcp``."""
    ports: list[PublishedPort] = []
    for entry in (raw or "").split(","):
        entry = entry.strip()
        if not entry:
            continue
        published, arrow, target = entry.rpartition("->")
        if not arrow:
            published, target = "", entry
        container_part, _, proto = target.partition("/")
        host_part = published.rpartition(":")[2] if published else "0"
        if not (container_part.isdigit() and host_part.isdigit()):
            continue
        try:
            protocol = Protocol.parse(proto or None)
        except ValueError:
            continue
        port = PublishedPort(
            host_port=int(host_part),
            container_port=int(container_part),
            protocol=protocol,
        )
        if port not in ports:
            ports.append(port)
    return tuple(ports)


def _created_epoch(raw: str | None) -> int:
    # docker ps renders "2024-05-01 12:00:00 +0200 CEST"; the zone name is dropped
    if not raw:
        return 0
    stamp = " ".join(raw.split()[:3])
    try:
        return int(datetime.strptime(stamp, "%Y-%m-%d %H:%M:%S %z").timestamp())
    except ValueError:
        return 0


def _container_summary(row: Mapping[str, Any]) -> ContainerSummary:
    names = tuple(name for name in str(row.get("Names") or "").split(",") if name)
    return ContainerSummary(
        container_id=str(row.get("ID", "")),
        names=names,
        image=str(row.get("Image") or ""),
        command=str(row.get("Command") or "").strip('"'),
        status=str(row.get("Status") or ""),
        state=str(row.get("State") or ""),
        created=_created_epoch(row.get("CreatedAt")),
        ports=parse_published_ports(row.get("Ports")),
    )


__all__ = [
    "DockerContainerEngine",
    "format_size",
    "parse_docker_time",
    "parse_exposed_ports",
    "parse_published_ports",
    "split_repo_tag",
]
