"""Relays phone sensor events to visuals and OSC receivers.

Some core ideas

- Phones open a websocket to the bridge and send JSON frames : one `connect`
  frame with their device id and hue, then `orientation` and `touch` frames.
- The bridge keeps one session per live device (`registry`), rescales sensor
  values to [0, 1] (`normalize`) and fans the resulting events out
  (`publisher`) to every consumer.
- Consumers are the OSC sink (`osc`, e.g. TouchDesigner on UDP port 7000) and
  visualization clients following the `/viz` websocket (`server`, `client`).
- Every few seconds the number of live devices is published as well.
"""
