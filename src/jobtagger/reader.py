import io
import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

import ijson
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from tqdm import tqdm

from .config import DEFAULT_CONFIG, WalkerConfig
from .tokenizer import Document, tokenize
from .walker import Payload, SchemaWalker, TraceCallback, TraceEvent

console = Console()
logger = logging.getLogger(__name__)


@dataclass
class ParsedJob:
    """A job metric file after tokenizing and walking it."""
    path: Path
    document: Document
    payloads: List[Payload] = field(default_factory=list)

    @property
    def token_count(self) -> int:
        return len(self.document)


@dataclass
class MetricSummary:
    """Aggregated payload statistics for one metric across all scanned files."""
    metric_name: str
    nodes: int = 0
    payloads: int = 0
    samples: int = 0
    scalar_payloads: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric_name,
            "nodes": self.nodes,
            "payloads": self.payloads,
            "samples": self.samples,
            "scalar_payloads": self.scalar_payloads,
        }


class JobMetricData:
    """
    Loads job metric files and locates the data payload of every node.

    Usage:
        jd = JobMetricData("job-1234/data.json")
        for payload in jd.payloads():
            ...
        jd.print_summary()
    """

    def __init__(self, file_paths: str | Path | List[str | Path], config: Optional[WalkerConfig] = None):
        if isinstance(file_paths, (str, Path)):
            file_paths = [file_paths]

        self.file_paths = [Path(p) for p in file_paths]
        for p in self.file_paths:
            if not p.exists():
                raise FileNotFoundError(f"File not found: {p}")

        self.config = config or DEFAULT_CONFIG
        self.jobs: Optional[List[ParsedJob]] = None

    def load_bytes(self, path: str | Path) -> bytes:
        """Reads the whole file into memory."""
        with open(path, 'rb') as f:
            return f.read()

    def parse_file(self, path: str | Path, trace: Optional[TraceCallback] = None) -> ParsedJob:
        """
        Tokenizes and walks a single file.
        Raises the first syntax or schema error found in it.
        """
        path = Path(path)
        if trace is None and self.config.trace_tokens:
            trace = self._print_event

        document = tokenize(self.load_bytes(path))
        payloads = SchemaWalker(document, self.config, trace).walk()
        logger.debug("%s: %d tokens, %d payloads", path, len(document), len(payloads))
        return ParsedJob(path=path, document=document, payloads=payloads)

    def scan(self) -> List[ParsedJob]:
        """
        Parses every file once and caches the result.
        Stops at the first file that fails to parse.
        """
        if self.jobs is not None:
            return self.jobs

        console.print(f"[bold blue]Scanning {len(self.file_paths)} files...[/bold blue]")

        jobs = []
        for path in tqdm(self.file_paths, desc="Parsing", unit=" files"):
            jobs.append(self.parse_file(path))

        self.jobs = jobs
        return self.jobs

    def payloads(self) -> Generator[Payload, None, None]:
        """Yields the payloads of all files in file order."""
        for job in self.scan():
            yield from job.payloads

    def count_payloads(self) -> int:
        return sum(len(job.payloads) for job in self.scan())

    def count_tokens(self) -> int:
        return sum(job.token_count for job in self.scan())

    def samples(self, job: ParsedJob, payload: Payload) -> List[Any]:
        """
        Decodes the sample values of an array payload.
        Missing samples (JSON null) come back as None.
        """
        if payload.is_scalar:
            raise ValueError(
                f"payload of metric {payload.metric_name!r} node {payload.node_index} "
                f"is the scalar {payload.scalar_text!r}, not a sample array"
            )
        raw = job.document.buffer[payload.start:payload.end]
        # use_float=True keeps samples as floats rather than Decimal
        return list(ijson.items(io.BytesIO(raw), 'item', use_float=True))

    def summarize(self) -> Dict[str, MetricSummary]:
        """Collects per-metric statistics over all files."""
        summaries: Dict[str, MetricSummary] = {}
        nodes = defaultdict(set)

        for job in self.scan():
            for payload in job.payloads:
                summary = summaries.get(payload.metric_name)
                if summary is None:
                    summary = summaries[payload.metric_name] = MetricSummary(payload.metric_name)
                nodes[payload.metric_name].add((job.path, payload.node_index))
                summary.payloads += 1
                if payload.is_scalar:
                    summary.scalar_payloads += 1
                else:
                    summary.samples += payload.element_count

        for name, summary in summaries.items():
            summary.nodes = len(nodes[name])
        return summaries

    def print_summary(self):
        table = Table(title="Metric Summary")
        table.add_column("Metric", style="cyan")
        table.add_column("Nodes", style="magenta")
        table.add_column("Payloads", style="green")
        table.add_column("Samples", style="yellow")
        table.add_column("Scalar", style="red")

        for name, summary in sorted(self.summarize().items()):
            table.add_row(
                escape(name),
                str(summary.nodes),
                str(summary.payloads),
                str(summary.samples),
                str(summary.scalar_payloads),
            )

        console.print(table)

    def print_payloads(self):
        table = Table(title="Data Payloads")
        table.add_column("File", style="cyan")
        table.add_column("Metric", style="magenta")
        table.add_column("Node", style="green")
        table.add_column("Elements / Value", style="white")

        for job in self.scan():
            for payload in job.payloads:
                value = escape(repr(payload.scalar_text)) if payload.is_scalar else str(payload.element_count)
                table.add_row(
                    escape(job.path.name), escape(payload.metric_name), str(payload.node_index), value
                )

        console.print(table)

    def print_trace(self, path: str | Path):
        """
        Prints one line per visited token of a single file.
        The walk still stops at the first error, after the tokens before it are printed.
        """
        console.print(f"[bold blue]Tracing {escape(str(path))}...[/bold blue]")
        job = self.parse_file(path, trace=self._print_event)
        console.print(f"[bold green]{job.token_count} tokens, {len(job.payloads)} payloads[/bold green]")

    def _print_event(self, event: TraceEvent):
        console.print(f"{event.index:>6} {event.format()}", markup=False, highlight=False)

    def export_to_json(self, output_path: str | Path):
        """
        Writes the payload descriptors of all files to a JSON array.
        """
        # Scan before opening output_path; a parse error must leave no file behind
        jobs = self.scan()

        console.print(f"[bold green]Exporting payloads to {escape(str(output_path))}...[/bold green]")

        with open(output_path, 'w') as f:
            f.write('[')
            first = True
            for job in jobs:
                for payload in job.payloads:
                    if not first:
                        f.write(',')
                    item = payload.to_dict()
                    item["file"] = str(job.path)
                    json.dump(item, f)
                    first = False
            f.write(']')

        console.print("[bold green]Export complete![/bold green]")
