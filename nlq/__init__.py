"""Natural-language query pipeline for the records assistant."""
