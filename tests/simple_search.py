#!/usr/bin/env python3

import logging
import asyncio
import ssdp_discovery as ssdp

#logging.basicConfig(level=logging.DEBUG)

async def amain():
    # all parameters to SsdpDiscovery are optional; they allow you to set the IP address or interface to bind to, etc.
    async with ssdp.SsdpDiscovery() as discovery:
        # Entering the discovery.search() context manager starts a session that broadcasts M-SEARCH requests until the timeout.
        # Parameters are optional; they allow you to set the MX value, max returned responses, extra headers, etc.
        async with discovery.search(ssdp.upnp.DEVICE_MEDIA_SERVER, timeout=5.0) as responses:
            # responses is an async iterable that yields SsdpMSearchResponse objects as devices are discovered,
            # until the timeout has elapsed or the max number of responses has been received.
            async for response in responses:
                print(f"{response.usn} at {response.location}")
                # It is possible to exit the loop early here if you found what you're looking for

loop = asyncio.new_event_loop()
try:
    asyncio.set_event_loop(loop)
    loop.run_until_complete(amain())
finally:
    loop.close()
