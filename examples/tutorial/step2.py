"""Step 2: Scoped Resources.

Values may carry a release action. Each resolution releases the values it
computed, in reverse order, when it is closed. Child resolutions reuse the
values of their parent without owning them.
"""

import tempfile
from pathlib import Path

import routegraph as rg
from routegraph._workspace import delete_directory_and_content

workspace = rg.key_of(Path, "workspace")
report = rg.key_of(Path, "report")

builder = rg.RouteGraph.builder()


@builder.rule(workspace)
def make_workspace() -> rg.Value[Path]:
    path = Path(rg.try_call(tempfile.mkdtemp, prefix="step2-"))
    return rg.Value.of(path, delete_directory_and_content)


@builder.rule(report, workspace)
@rg.adapt_failures(OSError)
def write_report(directory: Path) -> Path:
    target = directory / "report.txt"
    target.write_text("hello\n")
    return target


routes = builder.build()

if __name__ == "__main__":
    with routes.open(workspace) as root:
        for attempt in range(2):
            with root.open(report) as scope:
                print(f"attempt {attempt}: {scope.current()}")
        print(f"workspace still there: {root.current().exists()}")
    print(f"workspace after close: {root.current().exists()}")
