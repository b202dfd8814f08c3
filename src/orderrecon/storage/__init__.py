"""File-backed stand-ins for workbook sheets, script properties and the script lock."""
