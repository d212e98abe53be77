"""Processors that aggregate, enrich and derive rates for metric batches."""