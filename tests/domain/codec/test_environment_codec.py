from __future__ import annotations

import pytest

from acvpmeta.domain.codec import EnvironmentCodec, MatchResult
from acvpmeta.domain.codec.environment import has_inconsistent_software, reported_dependencies
from acvpmeta.domain.model import OperationalEnvironment, ProcessorDependency, SoftwareDependency
from acvpmeta.domain.ports import UrlScheme
from tests.helpers.registry import make_environment

LINUX = {"type": "software", "name": "Linux 5.4", "description": "Linux 5.4"}
XEON = {
    "type": "processor",
    "manufacturer": "Intel",
    "family": "X86",
    "name": "Xeon E5",
    "series": "Broadwell",
    "description": "Processor Xeon E5 (processor family X86) from Intel",
}


@pytest.fixture
def codec() -> EnvironmentCodec:
    return EnvironmentCodec(UrlScheme())


@pytest.mark.parametrize(
    ("software", "processor", "expected"),
    [
        (
            "Linux 5.4",
            ProcessorDependency(manufacturer="Intel", family="X86", name="Xeon E5", series="v4"),
            "Linux 5.4 on Intel v4 Xeon E5",
        ),
        (
            "Linux 5.4",
            ProcessorDependency(
                manufacturer="Intel", family="X86", name="Xeon E5", series="Xeon E5 v4"
            ),
            "Linux 5.4 on Intel Xeon E5 v4",
        ),
        (
            None,
            ProcessorDependency(manufacturer="ARM", family="ARMv8", name="Cortex-A72"),
            "ARM Cortex-A72",
        ),
        ("FreeRTOS 10", None, "FreeRTOS 10"),
        (None, None, ""),
    ],
)
def test_environment_name_is_composed_from_dependencies(
    software: str | None,
    processor: ProcessorDependency | None,
    expected: str,
) -> None:
    environment = OperationalEnvironment(
        software=SoftwareDependency(name=software),
        processor=processor,
    )

    assert environment.name == expected


def test_unregistered_dependencies_are_embedded(codec: EnvironmentCodec) -> None:
    document = codec.build(make_environment())

    assert document == {
        "name": "Linux 5.4 on Intel Broadwell Xeon E5",
        "dependencies": [XEON, LINUX],
    }


def test_registered_dependencies_are_referenced(codec: EnvironmentCodec) -> None:
    environment = make_environment()
    assert environment.processor is not None
    assert environment.software is not None
    environment.processor.identifier = 7
    environment.software.identifier = 8

    assert codec.build(environment) == {
        "name": "Linux 5.4 on Intel Broadwell Xeon E5",
        "dependencyUrls": ["/acvp/v1/dependencies/7", "/acvp/v1/dependencies/8"],
    }


def test_empty_environment_builds_nothing(codec: EnvironmentCodec) -> None:
    environment = OperationalEnvironment(software=SoftwareDependency(name=None))

    assert codec.build(environment) is None


def test_nameless_software_with_identifier_is_inconsistent() -> None:
    environment = make_environment(env_name=None)
    assert environment.software is not None
    environment.software.identifier = 12

    assert has_inconsistent_software(environment)
    assert reported_dependencies(environment) == (environment.processor,)


def test_built_document_matches_its_environment(codec: EnvironmentCodec) -> None:
    environment = make_environment(cpe="cpe:2.3:o:linux:linux_kernel:5.4")
    document = codec.build(environment)

    assert document is not None
    assert codec.compare(environment, document) is MatchResult.MATCH


def test_references_to_own_dependencies_match(codec: EnvironmentCodec) -> None:
    environment = make_environment()
    assert environment.processor is not None
    assert environment.software is not None
    environment.processor.identifier = 7
    environment.software.identifier = 8
    document = {
        "name": "Linux 5.4 on Intel Broadwell Xeon E5",
        "dependencyUrls": ["/acvp/v1/dependencies/8", "/acvp/v1/dependencies/7"],
    }

    assert codec.unresolved_references(environment, document) == []
    assert codec.compare(environment, document) is MatchResult.MATCH


def test_unknown_references_need_resolving(codec: EnvironmentCodec) -> None:
    environment = make_environment()
    document = {
        "name": "Linux 5.4 on Intel Broadwell Xeon E5",
        "dependencyUrls": ["/acvp/v1/dependencies/20", "/acvp/v1/dependencies/21"],
    }

    assert codec.unresolved_references(environment, document) == [20, 21]
    assert codec.compare(environment, document) is MatchResult.MISMATCH
    assert codec.compare(environment, document, {20: XEON, 21: LINUX}) is MatchResult.MATCH


def test_remote_software_with_undeclared_cpe_is_a_mismatch(codec: EnvironmentCodec) -> None:
    environment = make_environment()
    document = {
        "name": "Linux 5.4 on Intel Broadwell Xeon E5",
        "dependencies": [XEON, {**LINUX, "cpe": "cpe:2.3:o:linux:linux_kernel:5.4"}],
    }

    assert codec.compare(environment, document) is MatchResult.MISMATCH


def test_missing_dependency_is_a_mismatch(codec: EnvironmentCodec) -> None:
    environment = make_environment()
    document = {"name": "Linux 5.4 on Intel Broadwell Xeon E5", "dependencies": [LINUX]}

    assert codec.compare(environment, document) is MatchResult.MISMATCH


def test_extra_remote_dependency_is_a_mismatch(codec: EnvironmentCodec) -> None:
    environment = make_environment(processor=False)
    document = {"name": "Linux 5.4", "dependencies": [LINUX, XEON]}

    assert codec.compare(environment, document) is MatchResult.MISMATCH


def test_other_name_is_a_mismatch(codec: EnvironmentCodec) -> None:
    environment = make_environment()

    assert codec.compare(environment, {"name": "Linux 6.1"}) is MatchResult.MISMATCH
    assert codec.compare(environment, {"dependencies": []}) is MatchResult.MISSING
