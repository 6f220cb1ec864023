"""
Stdio client that routes server stderr through the rich logger.
"""

from contextlib import asynccontextmanager
import subprocess
import anyio
import anyio.lowlevel
from anyio.streams.text import TextReceiveStream
from mcp.client.stdio import StdioServerParameters, get_default_environment
from mcp.shared.message import SessionMessage
import mcp.types as types
from multiplex_mcp.utils.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def stdio_client_with_rich_stderr(server: StdioServerParameters, server_name: str | None = None):
    """
    Spawn a server subprocess and talk JSON-RPC to it over stdin/stdout.

    Each stderr line of the server is logged, at error level when it looks
    like an error and at debug level otherwise.

    Args:
        server: Command, arguments, environment and working directory of the server.
        server_name: Name used to prefix stderr lines. Defaults to the command.

    Yields:
        A tuple of (read_stream, write_stream) for communication with the server.
    """
    label = server_name or server.command
    read_stream_writer, read_stream = anyio.create_memory_object_stream(0)
    write_stream, write_stream_reader = anyio.create_memory_object_stream(0)

    try:
        process = await anyio.open_process(
            [server.command, *server.args],
            env={**get_default_environment(), **(server.env or {})},
            stderr=subprocess.PIPE,
            cwd=server.cwd,
        )
    except OSError as e:
        logger.error(f"{label}: Failed to start '{server.command}': {e}")
        await read_stream_writer.aclose()
        await write_stream_reader.aclose()
        raise

    logger.debug(f"{label}: Started process '{server.command}' with PID: {process.pid}")

    async def stdout_reader():
        assert process.stdout, "Opened process is missing stdout"
        try:
            async with read_stream_writer:
                buffer = ""
                async for chunk in TextReceiveStream(
                    process.stdout,
                    encoding=server.encoding,
                    errors=server.encoding_error_handler,
                ):
                    lines = (buffer + chunk).split("\n")
                    buffer = lines.pop()

                    for line in lines:
                        if not line:
                            continue
                        try:
                            message = types.JSONRPCMessage.model_validate_json(line)
                        except Exception as exc:
                            await read_stream_writer.send(exc)
                            continue

                        await read_stream_writer.send(SessionMessage(message))
        except anyio.ClosedResourceError:
            logger.debug(f"{label}: Stdout stream closed")
        finally:
            await anyio.lowlevel.checkpoint()

    async def stderr_reader():
        assert process.stderr, "Opened process is missing stderr"
        try:
            async for chunk in TextReceiveStream(
                process.stderr,
                encoding=server.encoding,
                errors=server.encoding_error_handler,
            ):
                for stderr_line in chunk.splitlines():
                    stderr_line = stderr_line.rstrip()
                    if not stderr_line:
                        continue
                    if "[ERROR]" in stderr_line or "Error" in stderr_line:
                        logger.error(f"{label} STDERR: {stderr_line}")
                    else:
                        logger.debug(f"{label} STDERR: {stderr_line}")
        except anyio.ClosedResourceError:
            logger.debug(f"{label}: Stderr stream closed")
        finally:
            await anyio.lowlevel.checkpoint()

    async def stdin_writer():
        assert process.stdin, "Opened process is missing stdin"
        try:
            async with write_stream_reader:
                async for session_message in write_stream_reader:
                    json = session_message.message.model_dump_json(by_alias=True, exclude_none=True)
                    await process.stdin.send(
                        (json + "\n").encode(
                            encoding=server.encoding,
                            errors=server.encoding_error_handler,
                        )
                    )
        except anyio.ClosedResourceError:
            logger.debug(f"{label}: Stdin stream closed")
        finally:
            await anyio.lowlevel.checkpoint()

    async with anyio.create_task_group() as tg, process:
        tg.start_soon(stdout_reader)
        tg.start_soon(stdin_writer)
        tg.start_soon(stderr_reader)
        try:
            yield read_stream, write_stream
        finally:
            tg.cancel_scope.cancel()
            await read_stream.aclose()
            await write_stream.aclose()
            logger.debug(f"{label}: Terminating process {process.pid}")
