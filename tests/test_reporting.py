import csv
import threading
from pathlib import Path
from media_sorter.models import Decision, PlacementEvent
from media_sorter.reporting import PlacementReport

def test_report_counts_and_csv(tmp_path):
    report = PlacementReport()
    report(PlacementEvent(Path("/src/a.jpg"), Path("/lib/a.jpg"), Decision.NEW_ORIGINAL, key="k1"))
    report(PlacementEvent(Path("/src/b.jpg"), Path("/lib/Duplicates/a.jpg"), Decision.FILED_AS_DUPLICATE,
                          key="k1", note="exact duplicate"))
    report(PlacementEvent(Path("/src/c.jpg"), None, Decision.UNRESOLVED, note="Permission denied"))

    assert report.count(Decision.NEW_ORIGINAL) == 1
    assert report.count(Decision.REPLACED_ORIGINAL) == 0
    assert "FILED_AS_DUPLICATE: 1" in report.summary()

    out = tmp_path / "report.csv"
    report.write_csv(out)
    with open(out, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))

    assert rows[0] == PlacementReport.HEADERS
    assert len(rows) == 4
    assert rows[2] == [str(Path("/src/b.jpg")), str(Path("/lib/Duplicates/a.jpg")), "FILED_AS_DUPLICATE", "k1", "exact duplicate"]
    assert rows[3][1] == ""

def test_report_is_thread_safe():
    report = PlacementReport()

    def emit():
        for _ in range(500):
            report(PlacementEvent(Path("/x"), Path("/y"), Decision.NEW_ORIGINAL))

    threads = [threading.Thread(target=emit) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert report.count(Decision.NEW_ORIGINAL) == 2000
    assert len(report.events) == 2000
