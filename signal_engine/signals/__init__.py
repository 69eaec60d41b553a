"""Signal layer: screener categories, prediction model, execution gate, ranking."""
