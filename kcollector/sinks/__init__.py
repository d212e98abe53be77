"""Sinks that receive metric batches: the Wavefront sink and the fan-out sink manager."""