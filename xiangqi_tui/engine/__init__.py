"""UCI/UCCI engine processes, info parsing and streamed analysis."""