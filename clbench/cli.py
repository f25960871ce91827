import json as _json
import signal
import sys
from contextlib import contextmanager

import click
from rich.console import Console

from . import config as _cfg
from .errors import DeviceError
from .runner import RunOptions, Status, resolve_test, run_test
from .utils.logging import set_level

console = Console()


def _ignore_sigint(signum, frame):
    pass


@contextmanager
def _sigint_ignored():
    """Swallow Ctrl-C for the duration of a benchmark run."""
    previous = signal.signal(signal.SIGINT, _ignore_sigint)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


@click.group(
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option(
    "-t",
    "--test",
    "test_id",
    type=int,
    default=None,
    help="Test to run: 0 = vector addition, 1 = image processing. Unknown ids run test 0.",
)
@click.option(
    "-n",
    "--iterations",
    type=click.IntRange(min=0),
    default=None,
    help="Iteration budget (default: CLBENCH_ITERATIONS, 10000).",
)
@click.option(
    "--kernel-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory holding the kernel .cl files (default: bundled kernels).",
)
@click.option(
    "--image",
    "image_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Input image for the image processing test (default: CLBENCH_IMAGE_PATH).",
)
@click.option(
    "--op",
    type=click.Choice(["erode", "dilate"]),
    default=None,
    help="Morphology operation for the image processing test.",
)
@click.option("--platform", "platform_index", type=click.IntRange(min=0), default=None,
              help="OpenCL platform index override.")
@click.option("--device", "device_index", type=click.IntRange(min=0), default=None,
              help="OpenCL device index override (within the platform).")
@click.option("--show", is_flag=True, help="Display the processed image when the image test finishes.")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log verbosity (default: CLBENCH_LOG_LEVEL, INFO).",
)
@click.pass_context
def main(ctx, test_id, iterations, kernel_dir, image_path, op, platform_index, device_index, show, log_level):
    """clbench — OpenCL vector addition and image morphology benchmark.

    Exit status: 0 when the benchmark ran (pass or fail is printed), 1 when a
    kernel file, the input image or the OpenCL device could not be used, 2 for
    invalid options.
    """
    _cfg.load_dotenv()
    set_level(log_level or _cfg.get("CLBENCH_LOG_LEVEL"))
    if ctx.invoked_subcommand is not None:
        return
    options = RunOptions(
        iterations=iterations,
        kernel_dir=kernel_dir,
        image_path=image_path,
        op=op,
        platform_index=platform_index,
        device_index=device_index,
        show=show,
    )
    with _sigint_ignored():
        outcome = run_test(resolve_test(test_id), options, console=console)
    if outcome.status in (Status.DEVICE_ERROR, Status.IO_ERROR):
        ctx.exit(1)


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Emit machine-readable JSON.")
def info(as_json: bool):
    """List OpenCL platforms and devices."""
    from .device import list_devices

    try:
        platforms = list_devices()
    except DeviceError as e:
        console.print(f"[red]OpenCL unavailable:[/red] {e}")
        sys.exit(1)
    if as_json:
        console.print(_json.dumps(platforms, indent=2), markup=False, highlight=False, soft_wrap=True)
        return
    console.print("[bold cyan]OpenCL Devices[/bold cyan]")
    console.print(f"Number of CL platforms: {len(platforms)}")
    for p in platforms:
        console.print(f"[{p['index']}] {p['name']} ({p['vendor']}, {p['version']})")
        for d in p["devices"]:
            mem_gb = (d["global_mem_size"] or 0) / (1024**3)
            console.print(
                f"  - [{d['index']}] {d['name']} CU={d['max_compute_units']} "
                f"WG={d['max_work_group_size']} mem={mem_gb:.2f} GB images={d['image_support']}"
            )


@main.group()
def config():
    """Inspect clbench configuration variables."""
    pass


@config.command("list")
@click.option("--json", "as_json", is_flag=True, help="Emit machine-readable JSON.")
def config_list(as_json: bool):
    items = _cfg.describe()
    if as_json:
        console.print(_json.dumps(items, indent=2, default=str), markup=False, highlight=False, soft_wrap=True)
        return
    for item in items:
        choices = f" choices={item['choices']}" if item["choices"] else ""
        console.print(
            f"- {item['name']} = {item['current']!r} (default {item['default']!r}){choices}\n"
            f"    {item['description']}"
        )


if __name__ == "__main__":
    main()
