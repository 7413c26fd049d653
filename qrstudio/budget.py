"""ECC budget tracker: does the code stay scannable under its logo?

The logo plate hides every module whose centre falls under it. Hidden data
modules are traced back through the standard placement order to the
codewords that carry them, and each codeword to its Reed-Solomon block. A
block can repair at most half of its ECC codewords, so the block with the
most damage decides whether the code still decodes.

Finder and format cells are never repairable: a plate over one of them, or
finder patterns drawn as separate dots or insets, makes the code unsafe
regardless of the ECC tier.
"""

from dataclasses import dataclass

from qrcode.base import rs_blocks
from qrcode.util import pattern_position

from qrstudio.config import CANONICAL_SIZE, ECCLevel, FinderStyle, ModuleStyle, RenderConfig
from qrstudio.generator import ModuleMatrix
from qrstudio.geometry import resolve
from qrstudio.logging import audit, get_logger, trace
from qrstudio.logo import logo_layout

log = get_logger("budget")

# Share of the repairable codewords a logo may use up. The rest is headroom
# for print blur, camera noise and the logo's own drop shadow.
SAFE_BUDGET = 0.80

# Codewords reserved for misdecode protection in the smallest symbols.
_MISDECODE_PROTECTION = {
    (1, "L"): 3, (1, "M"): 2, (1, "Q"): 1, (1, "H"): 1,
    (2, "L"): 2, (3, "L"): 1,
}


@dataclass
class ECCBudget:
    """ECC error-correction budget analysis."""

    version: int
    ecc: str
    total_codewords: int
    ecc_codewords: int
    correctable_codewords: int
    covered_modules: int = 0
    damaged_codewords: int = 0
    budget_used_pct: float = 0.0
    reserved_hidden: int = 0
    finder_risk: bool = False
    safe: bool = True

    def summary(self) -> str:
        size = self.version * 4 + 17
        return (
            f"ECC Budget (V{self.version}-{self.ecc}):\n"
            f"  Grid: {size}x{size} modules\n"
            f"  Codewords: {self.total_codewords} ({self.ecc_codewords} ECC)\n"
            f"  ECC can correct: {self.correctable_codewords} codewords\n"
            f"  Logo covers: {self.covered_modules} modules, damaging {self.damaged_codewords} codewords "
            f"({self.budget_used_pct:.1f}% of the worst block)\n"
            f"  Finder/format cells hidden: {self.reserved_hidden}\n"
            f"  Finder patterns split by style: {'yes' if self.finder_risk else 'no'}\n"
            f"  Status: {'SAFE' if self.safe else 'OVER BUDGET'}"
        )


def matrix_version(size: int) -> int | None:
    """QR version for a matrix edge, or None if no version has that edge."""
    if size < 21 or (size - 17) % 4:
        return None
    version = (size - 17) // 4
    return version if version <= 40 else None


# ---------------------------------------------------------------------------
# Function patterns and data placement
# ---------------------------------------------------------------------------

def reserved_cells(version: int) -> set[tuple[int, int]]:
    """Finder, separator, format and version-info cells."""
    size = version * 4 + 17
    cells = set()
    for r0, c0 in ((0, 0), (0, size - 8), (size - 8, 0)):
        for r in range(r0, r0 + 8):
            for c in range(c0, c0 + 8):
                cells.add((r, c))
    for i in range(9):
        cells.add((8, i))
        cells.add((i, 8))
    for i in range(8):
        cells.add((8, size - 1 - i))
        cells.add((size - 1 - i, 8))
    if version >= 7:
        for i in range(6):
            for j in range(size - 11, size - 8):
                cells.add((i, j))
                cells.add((j, i))
    return cells


def function_cells(version: int) -> set[tuple[int, int]]:
    """Every cell that does not carry data or ECC bits."""
    size = version * 4 + 17
    reserved = reserved_cells(version)
    cells = set(reserved)
    for i in range(size):
        cells.add((6, i))
        cells.add((i, 6))
    centres = pattern_position(version)
    for ar in centres:
        for ac in centres:
            if (ar, ac) in reserved:
                continue
            for r in range(ar - 2, ar + 3):
                for c in range(ac - 2, ac + 3):
                    cells.add((r, c))
    return cells


def placement_order(version: int) -> list[tuple[int, int]]:
    """Data cells in bit order: two-column strips, right to left, zigzagging."""
    size = version * 4 + 17
    fixed = function_cells(version)
    order = []
    col = size - 1
    upward = True
    while col > 0:
        if col == 6:
            col -= 1  # the vertical timing pattern has no partner column
        rows = range(size - 1, -1, -1) if upward else range(size)
        for r in rows:
            for c in (col, col - 1):
                if (r, c) not in fixed:
                    order.append((r, c))
        upward = not upward
        col -= 2
    return order


def codeword_blocks(version: int, ecc: ECCLevel) -> tuple[list[int], list[int]]:
    """Block index of every codeword in transmission order, and each block's ECC count."""
    blocks = rs_blocks(version, ecc.value)
    owners = []
    for i in range(max(b.data_count for b in blocks)):
        for n, b in enumerate(blocks):
            if i < b.data_count:
                owners.append(n)
    ecc_counts = [b.total_count - b.data_count for b in blocks]
    for i in range(max(ecc_counts)):
        for n, count in enumerate(ecc_counts):
            if i < count:
                owners.append(n)
    return owners, ecc_counts


def covered_cells(matrix_size: int, config: RenderConfig) -> set[tuple[int, int]]:
    """Cells whose centre lies under the logo's backing plate."""
    if not config.has_logo:
        return set()
    plan = resolve(matrix_size, CANONICAL_SIZE)
    layout = logo_layout(CANONICAL_SIZE, config)
    lo = layout.plate_x
    hi = layout.plate_x + layout.plate_edge
    half = plan.pitch / 2
    covered = set()
    for r in range(matrix_size):
        for c in range(matrix_size):
            x, y = plan.cell_origin(r, c)
            if lo <= x + half <= hi and lo <= y + half <= hi:
                covered.add((r, c))
    return covered


# ---------------------------------------------------------------------------
# Assessment
# ---------------------------------------------------------------------------

@trace
def compute_ecc_budget(version: int, ecc: ECCLevel, covered: set[tuple[int, int]],
                       finder_risk: bool = False) -> ECCBudget:
    """Budget for a symbol of *version* at *ecc* with *covered* cells hidden."""
    owners, ecc_counts = codeword_blocks(version, ecc)
    protect = _MISDECODE_PROTECTION.get((version, ecc.name), 0)
    correctable = [(count - protect) // 2 for count in ecc_counts]

    order = placement_order(version)
    damaged = set()
    for index, cell in enumerate(order[: len(owners) * 8]):
        if cell in covered:
            damaged.add(index // 8)

    per_block = [0] * len(ecc_counts)
    for codeword in damaged:
        per_block[owners[codeword]] += 1
    used = max(
        (hit / limit if limit > 0 else float(hit > 0)) for hit, limit in zip(per_block, correctable)
    )
    hidden = len(covered & reserved_cells(version))

    budget = ECCBudget(
        version=version,
        ecc=ecc.name,
        total_codewords=len(owners),
        ecc_codewords=sum(ecc_counts),
        correctable_codewords=sum(correctable),
        covered_modules=len(covered),
        damaged_codewords=len(damaged),
        budget_used_pct=used * 100,
        reserved_hidden=hidden,
        finder_risk=finder_risk,
        safe=used < SAFE_BUDGET and hidden == 0 and not finder_risk,
    )

    audit(
        "ecc.budget", logger=log,
        version=version, ecc=ecc.name,
        correctable=budget.correctable_codewords,
        covered=len(covered), damaged=len(damaged),
        budget_pct=f"{used:.1%}",
        finder_risk=finder_risk,
        safe=budget.safe,
    )
    return budget


def assess(matrix: ModuleMatrix, config: RenderConfig, with_logo: bool | None = None) -> ECCBudget | None:
    """Check that *matrix* rendered with *config* keeps enough ECC headroom.

    Logs a warning when it does not. Returns None for grids that are not a
    standard QR symbol size, which cannot be assessed. *with_logo* overrides
    whether a logo was actually drawn; by default it follows
    ``config.has_logo``.
    """
    matrix = ModuleMatrix.from_rows(matrix)
    version = matrix_version(matrix.size)
    if version is None:
        log.debug("no ECC budget for a %dx%d grid", matrix.size, matrix.size)
        return None

    finder_risk = config.style is not ModuleStyle.SQUARES and config.finder_style is FinderStyle.MATCH
    if with_logo is None:
        with_logo = config.has_logo
    covered = covered_cells(matrix.size, config) if with_logo else set()
    budget = compute_ecc_budget(version, config.ecc, covered, finder_risk)
    if not budget.safe:
        if finder_risk:
            log.warning("Finder patterns drawn as %s may not be detected; use finder_style='square'",
                        config.style.value)
        if budget.reserved_hidden:
            log.warning("Logo hides %d finder/format cells; reduce logo_size", budget.reserved_hidden)
        if budget.budget_used_pct >= SAFE_BUDGET * 100:
            log.warning("Logo uses %.0f%% of the ECC budget at level %s; raise ECC or reduce logo_size",
                        budget.budget_used_pct, budget.ecc)
    return budget
