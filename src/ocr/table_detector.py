"""Table detection from aligned OCR text blocks.

Groups text blocks into rows by vertical position and keeps runs of rows
whose cells line up with the same column positions.
"""

from typing import Protocol

from src.ocr.models import BoundingBox, TableData, TextBlock
from src.utils.logger import get_logger

logger = get_logger(__name__)


class TableDetectorProtocol(Protocol):
    def detect_tables(
        self, text_blocks: list[TextBlock], image_size: tuple[int, int]
    ) -> list[TableData]: ...


class TableDetector:
    """Reconstructs tables from normalized text block positions.

    Args:
        row_tolerance: Largest vertical offset between blocks in one row.
        column_tolerance: Largest horizontal offset between a cell and
            its column position.
        title_distance: Largest gap between a table and the block above
            it for that block to count as the table title.
    """

    def __init__(
        self,
        row_tolerance: float = 0.02,
        column_tolerance: float = 0.03,
        title_distance: float = 0.1,
    ) -> None:
        self.row_tolerance = row_tolerance
        self.column_tolerance = column_tolerance
        self.title_distance = title_distance

    def detect_tables(
        self, text_blocks: list[TextBlock], image_size: tuple[int, int]
    ) -> list[TableData]:
        """Detect tables in a page of text blocks.

        Args:
            text_blocks: Recognized blocks with normalized boxes.
            image_size: ``(width, height)`` of the source image in pixels.

        Returns:
            Valid tables, top to bottom.
        """
        width, height = image_size
        if width <= 0 or height <= 0 or len(text_blocks) < 4:
            return []

        tables: list[TableData] = []
        run: list[list[TextBlock]] = []

        for row in self._group_rows(text_blocks):
            if len(row) >= 2 and run and self._aligned(run[0], row):
                run.append(row)
                continue
            self._flush(run, text_blocks, tables)
            run = [row] if len(row) >= 2 else []
        self._flush(run, text_blocks, tables)

        logger.info("Detected %d tables", len(tables))
        return tables

    def _group_rows(self, blocks: list[TextBlock]) -> list[list[TextBlock]]:
        """Group blocks with similar top edges, each row sorted left to right."""
        rows: list[list[TextBlock]] = []
        for block in sorted(blocks, key=lambda b: (b.bbox.y, b.bbox.x)):
            if rows and abs(block.bbox.y - rows[-1][0].bbox.y) <= self.row_tolerance:
                rows[-1].append(block)
            else:
                rows.append([block])
        return [sorted(row, key=lambda b: b.bbox.x) for row in rows]

    def _aligned(self, header: list[TextBlock], row: list[TextBlock]) -> bool:
        """Check whether enough cells of ``row`` sit under header columns."""
        matched = sum(
            1
            for column in header
            if any(
                abs(cell.bbox.x - column.bbox.x) <= self.column_tolerance for cell in row
            )
        )
        return matched >= max(2, len(header) - 1)

    def _cells(self, header: list[TextBlock], row: list[TextBlock]) -> list[str]:
        """Map row blocks onto header columns, padding gaps with empty cells."""
        cells = []
        for column in header:
            match = next(
                (
                    cell
                    for cell in row
                    if abs(cell.bbox.x - column.bbox.x) <= self.column_tolerance
                ),
                None,
            )
            cells.append(match.text if match else "")
        return cells

    def _flush(
        self,
        run: list[list[TextBlock]],
        blocks: list[TextBlock],
        tables: list[TableData],
    ) -> None:
        """Turn a run of aligned rows into a table if it is large enough."""
        if len(run) < 2:
            return

        header = run[0]
        members = [block for row in run for block in row]
        bbox = members[0].bbox
        for block in members[1:]:
            bbox = bbox.union(block.bbox)

        table = TableData(
            headers=[block.text for block in header],
            rows=[self._cells(header, row) for row in run[1:]],
            bbox=bbox,
            confidence=sum(b.confidence for b in header) / len(header),
            title=self._find_title(bbox, blocks, members),
        )
        if table.is_valid:
            tables.append(table)
        else:
            logger.debug("Discarding low-confidence table (%.2f)", table.confidence)

    def _find_title(
        self,
        bbox: BoundingBox,
        blocks: list[TextBlock],
        members: list[TextBlock],
    ) -> str | None:
        """Pick the closest block just above the table as its title."""
        candidates = [
            block
            for block in blocks
            if block not in members
            and block.bbox.max_y <= bbox.y
            and bbox.y - block.bbox.max_y <= self.title_distance
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda b: b.bbox.max_y).text.strip() or None
