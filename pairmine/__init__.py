"""Frequent pair mining (A-Priori and PCY) and a dataset-size scalability study."""
