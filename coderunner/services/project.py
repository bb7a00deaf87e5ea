"""Runner project layout and dotnet command lines.

The build manifest is fixed: it names ``Program.cs`` as the only
compilation unit and pins the target framework. Submissions cannot change
it.
"""

import shlex
from typing import Dict, List

PROJECT_FILE = "Runner.csproj"
SOURCE_FILE = "Program.cs"
ASSEMBLY_NAME = "Runner"
TARGET_FRAMEWORK = "net10.0"

DOTNET_ENV = {
    "DOTNET_CLI_TELEMETRY_OPTOUT": "1",
    "DOTNET_NOLOGO": "1",
    "NUGET_HTTP_CACHE_PATH": "/root/.nuget/http",
    "NUGET_PACKAGES": "/root/.nuget/packages",
}


def render_manifest() -> str:
    return "\n".join(
        [
            '<Project Sdk="Microsoft.NET.Sdk">',
            "  <PropertyGroup>",
            "    <OutputType>Exe</OutputType>",
            f"    <TargetFramework>{TARGET_FRAMEWORK}</TargetFramework>",
            f"    <AssemblyName>{ASSEMBLY_NAME}</AssemblyName>",
            "    <ImplicitUsings>enable</ImplicitUsings>",
            "    <Nullable>enable</Nullable>",
            "    <EnableDefaultCompileItems>false</EnableDefaultCompileItems>",
            "  </PropertyGroup>",
            "  <ItemGroup>",
            f'    <Compile Include="{SOURCE_FILE}" />',
            "  </ItemGroup>",
            "</Project>",
            "",
        ]
    )


def project_files(code: str) -> Dict[str, str]:
    """Files injected into the work directory for one submission."""
    return {PROJECT_FILE: render_manifest(), SOURCE_FILE: code}


class DotnetCommands:
    """Builds the command vectors for each pipeline stage."""

    def __init__(self, work_dir: str, out_dir: str):
        self.work_dir = work_dir
        self.out_dir = out_dir

    @property
    def project_path(self) -> str:
        return f"{self.work_dir.rstrip('/')}/{PROJECT_FILE}"

    @property
    def assembly_path(self) -> str:
        return f"{self.out_dir.rstrip('/')}/{ASSEMBLY_NAME}.dll"

    def _shell(self, command: str) -> List[str]:
        exports = " ".join(f"{k}={shlex.quote(v)}" for k, v in DOTNET_ENV.items())
        return ["sh", "-lc", f"export {exports}; {command}"]

    def restore_offline(self) -> List[str]:
        return self._shell(
            f"dotnet restore {shlex.quote(self.project_path)} "
            "--disable-parallel --ignore-failed-sources"
        )

    def restore_online(self, source: str) -> List[str]:
        return self._shell(
            f"dotnet restore {shlex.quote(self.project_path)} "
            f"--source {shlex.quote(source)} --disable-parallel"
        )

    def build(self) -> List[str]:
        return self._shell(
            f"dotnet build {shlex.quote(self.project_path)} -c Release "
            f"-o {shlex.quote(self.out_dir)} --no-restore"
        )

    def run(self) -> List[str]:
        return ["dotnet", self.assembly_path]

    def kill_run(self) -> List[str]:
        """Kill any process still executing the compiled assembly."""
        target = shlex.quote(self.assembly_path)
        return [
            "sh",
            "-c",
            "for p in /proc/[0-9]*; do "
            '[ "${p#/proc/}" = "$$" ] && continue; '
            f"grep -qF {target} \"$p/cmdline\" 2>/dev/null && kill -9 \"${{p#/proc/}}\"; "
            "done; true",
        ]

    def list_workspace(self) -> List[str]:
        return [
            "sh",
            "-lc",
            f"pwd; echo; ls -la {shlex.quote(self.work_dir)}; echo; "
            f"ls -la {shlex.quote(self.out_dir)} || true",
        ]
