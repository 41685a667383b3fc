"""
ERP Sessions — Import en masse de sessions depuis un export tableur (JSON).
Le fichier est un array de lignes (en-têtes du tableur conservés):
  deal_id_pipedrive, num_sesion, inicio, fin, formador, formador_sup, estado de la sesión
Les lignes sont regroupées par deal puis importées deal par deal.

Run: cd /app/backend && python3 scripts/import_sessions.py ./sesiones.json
"""

import asyncio
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from services.import_errors import SessionImportError
from services.session_import import import_deal_sessions
from services.session_row_parser import count_rows_without_deal, group_rows_by_deal
from services.trainer_resolver import load_trainer_directory


async def run(path: Path) -> int:
    rows = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(rows, list):
        print("Le JSON doit être un array de lignes.")
        return 1

    groups = group_rows_by_deal(rows)
    without_deal = count_rows_without_deal(rows)
    print(f"Lignes: {len(rows)} | Deals: {len(groups)} | sans deal (ignorées): {without_deal}")

    directory = await load_trainer_directory()
    failures = 0

    for deal_id, deal_rows in groups.items():
        try:
            summary = await import_deal_sessions(deal_id, deal_rows, directory=directory)
        except SessionImportError as e:
            failures += 1
            print(f"  ✗ {deal_id}: [{e.code}] {e.message}")
            continue
        print(
            f"  ✓ {deal_id}: created={summary.created} updated={summary.updated} "
            f"removed={summary.removed} ignorées={summary.dropped_rows} "
            f"sans_salle={summary.unassigned_rooms}"
        )
        if summary.unresolved_trainers:
            print(f"    formateurs non trouvés: {', '.join(summary.unresolved_trainers)}")

    print(f"\nTerminé: {len(groups) - failures} OK, {failures} en erreur")
    return 1 if failures else 0


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python3 scripts/import_sessions.py <fichier.json>")
        sys.exit(1)

    input_path = Path(sys.argv[1]).resolve()
    if not input_path.exists():
        print(f"Fichier introuvable: {input_path}")
        sys.exit(1)

    sys.exit(asyncio.run(run(input_path)))
