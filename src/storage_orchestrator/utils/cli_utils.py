from rich.console import Console
from rich.table import Table

from storage_orchestrator.models.storage import ListObjectsResult, BucketStats

def get_rich_console() -> Console: return Console(stderr=True)


def human_size(num: int) -> str:
    size = float(num)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if size < 1024 or unit == "TB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{num} B"


def listing_table(result: ListObjectsResult, bucket: str) -> Table:
    table = Table(title=f"Objects in '{bucket}'")
    table.add_column("Key", overflow="fold")
    table.add_column("Size", justify="right")
    table.add_column("Last modified")
    for item in result.items:
        modified = item.last_modified.isoformat() if item.last_modified else "-"
        table.add_row(item.key, human_size(item.size), modified)
    return table


def stats_table(stats: BucketStats) -> Table:
    table = Table(title=f"Bucket '{stats.bucket}'", show_header=False)
    table.add_row("Objects", str(stats.total_files))
    table.add_row("Total size", human_size(stats.total_size))
    table.add_row("Last modified", stats.last_modified.isoformat() if stats.last_modified else "-")
    return table
