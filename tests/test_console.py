import io
import re
import threading

import pytest
from colorama import Fore, Style

from hooklog.console import Console, ctext


def test_ctext_applies_color_only_when_enabled():
    assert ctext("hi", Fore.RED) == Fore.RED + "hi" + Style.RESET_ALL
    assert ctext("hi", Fore.RED, enabled=False) == "hi"
    assert ctext("hi") == "hi"


def test_plain_and_stamped_lines():
    stream = io.StringIO()
    console = Console(stream)

    console.plain("Starting server on localhost:7860")
    console.error("boom")

    lines = stream.getvalue().splitlines()
    assert lines[0] == "Starting server on localhost:7860"
    assert re.fullmatch(r"\[\d\d:\d\d:\d\d\] boom", lines[1])


def test_colored_console_wraps_lines():
    stream = io.StringIO()
    Console(stream, color=True).success("ok")

    assert stream.getvalue().startswith(Fore.GREEN)
    assert Style.RESET_ALL in stream.getvalue()


def test_block_is_written_only_on_exit():
    stream = io.StringIO()
    console = Console(stream)

    with console.block() as block:
        block.line("first")
        block.line()
        block.line("second")
        assert stream.getvalue() == ""
        assert len(block) == 3

    assert stream.getvalue() == "first\n\nsecond\n"


def test_block_is_flushed_when_handler_raises():
    stream = io.StringIO()
    console = Console(stream)

    with pytest.raises(RuntimeError):
        with console.block() as block:
            block.line("partial")
            raise RuntimeError("stop")

    assert stream.getvalue() == "partial\n"


def test_concurrent_blocks_stay_contiguous():
    stream = io.StringIO()
    console = Console(stream)

    def write_block(n):
        with console.block() as block:
            for i in range(50):
                block.line(f"{n}:{i}")

    threads = [threading.Thread(target=write_block, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    lines = stream.getvalue().splitlines()
    assert len(lines) == 400
    for start in range(0, 400, 50):
        owners = {line.split(":")[0] for line in lines[start:start + 50]}
        assert len(owners) == 1
