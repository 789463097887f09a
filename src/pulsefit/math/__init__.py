"""
Histogram, Gaussian and linear least-squares helpers used by the Template
Builder and the Template Fitter.
"""
