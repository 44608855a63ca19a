"""Tests for scanning descriptor source files."""

from pathlib import Path

import pytest

from dbc_tables.scanner import DescriptorScanner, scan_descriptor, scan_directory

FACTION_SOURCE = """\
import { int, uint } from '../../data/primitives'
import { DBCRow, DBCFile } from '../DBCFile'

/**
 * Main row definition
 * - Add column comments to the commented getters below
 */
export class FactionRow extends DBCRow<FactionCreator,FactionQuery> {
    /**
     * Primary Key
     */
    @PrimaryKey()
    get ID() { return new DBCKeyCell(this,this.buffer,this.offset+0)}

    get ReputationIndex() { return new DBCIntCell(this,this.buffer,this.offset+4)}

    get ReputationRaceMask() { return new DBCIntArrayCell(this,4,this.buffer,this.offset+8)}

    get ParentFactionMod() { return new DBCFloatArrayCell(this,2,this.buffer,this.offset+24)}

    get Name() { return new DBCLocStringCell(this,this.buffer,this.offset+32)}

    /**
     * Creates a clone of this row with new primary keys.
     */
    clone(ID : int, c? : FactionCreator) : this {
        return this.cloneInternal([ID],c);
    }

    get table() { return DBC.Faction }

    get label(): string { return "{ faction }" }
}
"""


class TestDescriptorScanner:
    """Tests for DescriptorScanner."""

    def test_scan_declarations(self):
        """Test that every cell accessor is found with its arguments."""
        result = scan_descriptor(FACTION_SOURCE, unit="Faction")

        found = {d.name: (d.cell_type, d.array_size, d.offset) for d in result.declarations}
        assert found == {
            "ID": ("DBCKeyCell", None, 0),
            "ReputationIndex": ("DBCIntCell", None, 4),
            "ReputationRaceMask": ("DBCIntArrayCell", 4, 8),
            "ParentFactionMod": ("DBCFloatArrayCell", 2, 24),
            "Name": ("DBCLocStringCell", None, 32),
        }
        assert result.errors == []
        assert result.is_schemaable

    def test_non_field_getters_ignored(self):
        """Test that getters not constructing a cell are not declarations."""
        result = scan_descriptor(FACTION_SOURCE)

        names = [d.name for d in result.declarations]
        assert "table" not in names
        assert "label" not in names

    def test_duplicate_id_keeps_first(self):
        """Test that only the first ID declaration is kept."""
        source = """
        get ID() { return new DBCKeyCell(this,this.buffer,this.offset+0)}
        get Value() { return new DBCIntCell(this,this.buffer,this.offset+4)}
        get ID() { return new DBCKeyCell(this,this.buffer,this.offset+8)}
        """
        result = scan_descriptor(source)

        ids = [d for d in result.declarations if d.name == "ID"]
        assert len(ids) == 1
        assert ids[0].offset == 0

    def test_malformed_declaration_skipped(self):
        """Test that one malformed declaration does not stop the scan."""
        source = """
        get ID() { return new DBCKeyCell(this,this.buffer,this.offset+0)}
        get Broken() { return new DBCIntCell(this,this.buffer,this.offset+)}
        get After() { return new DBCFloatCell(this,this.buffer,this.offset+8)}
        """
        result = scan_descriptor(source, unit="Thing")

        assert [d.name for d in result.declarations] == ["ID", "After"]
        assert len(result.errors) == 1
        error = result.errors[0]
        assert error.unit == "Thing"
        assert error.lineno == 3

    def test_unterminated_declaration_at_end(self):
        """Test that a declaration cut off by end of file is reported."""
        source = """
        get ID() { return new DBCKeyCell(this,this.buffer,this.offset+0)}
        get Cut() { return new DBCIntCell(this,this.buffer,this.offset+4)
        """
        result = scan_descriptor(source)

        assert [d.name for d in result.declarations] == ["ID"]
        assert len(result.errors) == 1

    def test_no_declarations(self):
        """Test that a unit without cells is not schemaable."""
        result = scan_descriptor("export const x = 1;\nget foo() { return 1 }")

        assert result.declarations == []
        assert not result.is_schemaable

    def test_scanner_reusable(self):
        """Test that one scanner can scan several units."""
        scanner = DescriptorScanner()
        first = scanner.scan(FACTION_SOURCE, unit="Faction")
        second = scanner.scan(
            "get ID() { return new DBCKeyCell(this,this.buffer,this.offset+0)}", unit="Other"
        )

        assert len(first.declarations) == 5
        assert [d.name for d in second.declarations] == ["ID"]
        assert second.declarations[0].lineno == 1


class TestScanDirectory:
    """Tests for scanning a directory of descriptor files."""

    def test_scan_directory(self, tmp_path: Path):
        """Test scanning skips Types.ts and keys results by file stem."""
        (tmp_path / "Faction.ts").write_text(FACTION_SOURCE)
        (tmp_path / "Types.ts").write_text(
            "get ID() { return new DBCKeyCell(this,this.buffer,this.offset+0)}"
        )
        (tmp_path / "Empty.ts").write_text("export {}")
        (tmp_path / "notes.txt").write_text("ignored")

        results = scan_directory(tmp_path)

        assert list(results) == ["Empty", "Faction"]
        assert not results["Empty"].is_schemaable
        assert len(results["Faction"].declarations) == 5

    def test_missing_directory(self, tmp_path: Path):
        """Test that a missing directory raises."""
        with pytest.raises(FileNotFoundError):
            scan_directory(tmp_path / "missing")
